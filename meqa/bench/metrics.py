import statistics


def _percentile(values: list[float], pct: int) -> float:
    if len(values) == 1:
        return values[0]
    # quantiles(n=100) gives the 1st..99th cut points
    return statistics.quantiles(values, n=100, method="inclusive")[pct - 1]


class Metrics:
    def aggregate(self, suites: dict) -> dict:
        # suites: {name: [StepResult, ...]}
        steps = [r for results in suites.values() for r in results]
        passed = sum(1 for r in steps if r.ok)
        durations = [r.duration_ms for r in steps if r.status_code is not None]

        summary = {
            "suites": len(suites),
            "suites_failed": sum(1 for results in suites.values() if not all(r.ok for r in results)),
            "steps": len(steps),
            "passed": passed,
            "failed": len(steps) - passed,
        }
        if durations:
            summary["p50_ms"] = round(_percentile(durations, 50), 3)
            summary["p95_ms"] = round(_percentile(durations, 95), 3)
        return summary
