from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional

import structlog

from meqa.bench.plan_runner import PlanRunner
from meqa.bench.types import Credentials, RunContext
from meqa.errors import MeqaError, ValidationError
from meqa.export.result_sink import ResultSink
from meqa.sut.spec_store import SpecStore

RUN_ALL = "all"


class ExecutionOrchestrator:
    """
    Drives one `run`:

      1) prepare()  validates paths, loads the spec and the plan into a RunContext
      2) run()      executes one suite or all of them, never stopping on failure
      3) finalize() replaces the result file with the accumulated results

    Suites run strictly one after another.
    """

    def __init__(
        self,
        spec_store_factory: Callable[[], object] = SpecStore,
        plan_runner_factory: Callable[[object, Credentials], object] = PlanRunner,
        result_sink: Optional[ResultSink] = None,
        file_log=None,
        file_log_factory: Optional[Callable[[Path], object]] = None,
        strict: bool = False,
    ) -> None:
        self.spec_store_factory = spec_store_factory
        self.plan_runner_factory = plan_runner_factory
        self.sink = result_sink or ResultSink()
        self.strict = strict

        self._console = structlog.get_logger("orchestrator")
        self._file_log = file_log or self._console
        self.file_log_factory = file_log_factory

    @property
    def file_log(self):
        return self._file_log

    def prepare(self, swagger_path, workspace_dir, plan_path, credentials: Credentials) -> RunContext:
        swagger_path = Path(swagger_path)
        workspace_dir = Path(workspace_dir)
        plan_path = Path(plan_path)

        if not swagger_path.exists():
            raise ValidationError(f"can't load swagger file at the following location {swagger_path}")
        if not workspace_dir.exists():
            raise ValidationError(f"specified meqa directory {workspace_dir} doesn't exist.")
        if not workspace_dir.is_dir():
            raise ValidationError(f"specified meqa directory {workspace_dir} is not a directory.")
        if not plan_path.exists():
            raise ValidationError(f"can't load test plan file at the following location {plan_path}")

        # workspace exists from here on
        if self.file_log_factory is not None:
            self._file_log = self.file_log_factory(workspace_dir)

        spec_store = self.spec_store_factory()
        ctx = RunContext(
            spec_path=swagger_path,
            workspace_dir=workspace_dir,
            plan_path=plan_path,
            credentials=credentials,
            spec_store=spec_store,
            plan_runner=self.plan_runner_factory(spec_store, credentials),
        )

        # Load failures are recorded and the run goes ahead with whatever
        # did load, unless strict mode asks for an early abort.
        try:
            spec_store.load(swagger_path)
        except MeqaError as e:
            self._load_failed(ctx, "spec_load_failed", e)
        try:
            ctx.plan_runner.load(plan_path)
        except MeqaError as e:
            self._load_failed(ctx, "plan_load_failed", e)

        if self.strict and ctx.load_errors:
            raise ValidationError("; ".join(ctx.load_errors))
        return ctx

    def _load_failed(self, ctx: RunContext, event: str, error: Exception) -> None:
        ctx.load_errors.append(str(error))
        self._file_log.error(event, error=str(error))
        if self._file_log is not self._console:
            self._console.error(event, error=str(error))

    def run(self, ctx: RunContext, target: str = RUN_ALL) -> Dict[str, Optional[str]]:
        """Run the target suite (or every suite, in plan order) and return name -> error."""
        if target == RUN_ALL:
            names = [suite.name for suite in ctx.plan_runner.suites]
        else:
            names = [target]

        outcomes: Dict[str, Optional[str]] = {}
        for name in names:
            outcomes[name] = self._run_suite(ctx, name)
        return outcomes

    def _run_suite(self, ctx: RunContext, name: str) -> Optional[str]:
        print(f"\n---\nTest suite: {name}")
        self._file_log.info("suite_start", suite=name)

        error = None
        try:
            ctx.plan_runner.run(name)
        except MeqaError as e:
            error = str(e)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        self._file_log.info("suite_done", suite=name, ok=error is None, err=error)
        if error is not None:
            self._console.warning("suite_failed", suite=name, err=error)
        return error

    def finalize(self, ctx: RunContext, result_path) -> None:
        self.sink.write_result(result_path, ctx.plan_runner.result_document())
        self._file_log.info("result_written", path=str(result_path))
