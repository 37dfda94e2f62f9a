from pathlib import Path

import httpx
import yaml
from behave import given, when, then

from meqa.bench.orchestrator import ExecutionOrchestrator
from meqa.bench.plan_runner import PlanRunner
from meqa.bench.types import Credentials, RunContext, TestSuite
from meqa.errors import SuiteFailedError, SuiteNotFoundError, ValidationError


class FakePlanRunner:
    def __init__(self, names):
        self.suites = [TestSuite(name=n, steps=[]) for n in names]
        self.failing = set()
        self.crashing = set()
        self.calls = []

    def run(self, name):
        self.calls.append(name)
        if name not in [s.name for s in self.suites]:
            raise SuiteNotFoundError(name)
        if name in self.crashing:
            raise RuntimeError(f"{name} blew up")
        if name in self.failing:
            raise SuiteFailedError(name, ["step-1"])

    def result_document(self):
        return {
            "suites": {name: {"ok": name not in self.failing} for name in self.calls},
            "summary": {"suites": len(self.calls)},
        }


def _names(text):
    return [n.strip() for n in text.split(",") if n.strip()]


@given('a loaded plan with suites "{names}"')
def step_loaded_plan(context, names):
    context.runner = FakePlanRunner(_names(names))
    context.ctx = RunContext(
        spec_path=context.workspace / "swagger.yaml",
        workspace_dir=context.workspace,
        plan_path=context.workspace / "plan.yaml",
        credentials=Credentials(),
        spec_store=None,
        plan_runner=context.runner,
    )
    context.orchestrator = ExecutionOrchestrator()


@given('suite "{name}" fails')
def step_suite_fails(context, name):
    context.runner.failing.add(name)


@given('a workspace file "{name}" containing:')
def step_workspace_file_content(context, name):
    (context.workspace / name).write_text(context.text, encoding="utf-8")


@when('I run the target "{target}"')
def step_run_target(context, target):
    context.outcomes = context.orchestrator.run(context.ctx, target)


@when('I finalize into "{name}"')
def step_finalize(context, name):
    context.orchestrator.finalize(context.ctx, context.workspace / name)


@then('the suites ran in the order "{names}"')
def step_run_order(context, names):
    assert context.runner.calls == _names(names), context.runner.calls


@then('the outcome of suite "{name}" is a failure')
def step_outcome_failure(context, name):
    assert context.outcomes[name] is not None, context.outcomes


@then('the outcome of suite "{name}" is a success')
def step_outcome_success(context, name):
    assert context.outcomes[name] is None, context.outcomes


@then('the workspace file "{name}" holds exactly the current result document')
def step_result_file(context, name):
    text = (context.workspace / name).read_text(encoding="utf-8")
    assert yaml.safe_load(text) == context.runner.result_document()
    assert "stale" not in text


def _write_plan(path: Path, names):
    path.write_text(
        yaml.safe_dump({n: [{"method": "get", "path": "/ping"}] for n in names}),
        encoding="utf-8",
    )


@given('the run inputs "{swagger}", "{workspace}" and "{plan}"')
def step_run_inputs(context, swagger, workspace, plan):
    root = context.workspace
    (root / "workspace").mkdir()
    (root / "swagger.yaml").write_text('swagger: "2.0"\npaths: {}\n', encoding="utf-8")
    _write_plan(root / "plan.yaml", ["A"])
    context.inputs = (root / swagger, root / workspace, root / plan)


@given('a broken swagger file and a plan with suites "{names}"')
def step_broken_swagger(context, names):
    root = context.workspace
    (root / "swagger.yaml").write_text("paths: [unclosed\n", encoding="utf-8")
    _write_plan(root / "plan.yaml", _names(names))
    context.inputs = (root / "swagger.yaml", root, root / "plan.yaml")


def _prepare(context, strict):
    orchestrator = ExecutionOrchestrator(strict=strict)
    context.ctx = None
    try:
        context.ctx = orchestrator.prepare(*context.inputs, Credentials())
    except ValidationError as e:
        context.error = e


@when("I prepare the run")
def step_prepare(context):
    _prepare(context, strict=False)


@when("I prepare the run in strict mode")
def step_prepare_strict(context):
    _prepare(context, strict=True)


@then('preparation fails mentioning "{text}"')
def step_prepare_failed(context, text):
    assert context.ctx is None
    assert text in str(context.error), str(context.error)


@then("preparation succeeds with {count:d} load error")
def step_prepare_ok(context, count):
    assert context.error is None, context.error
    assert len(context.ctx.load_errors) == count, context.ctx.load_errors


@then('the prepared run has suites "{names}"')
def step_prepared_suites(context, names):
    assert [s.name for s in context.ctx.plan_runner.suites] == _names(names)


@given('suite "{name}" crashes')
def step_suite_crashes(context, name):
    context.runner.crashing.add(name)


_SWAGGER = """\
swagger: "2.0"
host: api.test
paths: {}
"""

_SWAGGER_NAMELESS_PARAM = """\
swagger: "2.0"
host: api.test
paths:
  /pet/{petId}:
    get:
      parameters:
        - {in: path, type: integer}
"""


def _write_inputs(context, swagger_text):
    root = context.workspace
    (root / "swagger.yaml").write_text(swagger_text, encoding="utf-8")
    (root / "plan.yaml").write_text(context.text, encoding="utf-8")
    context.inputs = (root / "swagger.yaml", root, root / "plan.yaml")


@given("a swagger file and the plan:")
def step_swagger_and_plan(context):
    _write_inputs(context, _SWAGGER)


@given("a swagger file with a nameless path parameter and the plan:")
def step_swagger_nameless_and_plan(context):
    _write_inputs(context, _SWAGGER_NAMELESS_PARAM)


@when("I prepare the run against a recording target")
def step_prepare_recording(context):
    context.recorded = []

    def handle(request):
        context.recorded.append(f"{request.method} {request.url.path}")
        return httpx.Response(200, json={"ok": True})

    transport = httpx.MockTransport(handle)
    context.orchestrator = ExecutionOrchestrator(
        plan_runner_factory=lambda store, creds: PlanRunner(store, creds, transport=transport, timeout=5.0),
    )
    context.ctx = context.orchestrator.prepare(*context.inputs, Credentials())


@then('the recording target received only "{request_line}"')
def step_recorded_only(context, request_line):
    assert context.recorded == [request_line], context.recorded


def _result_file_step(context, name):
    result = yaml.safe_load((context.workspace / "result.yaml").read_text(encoding="utf-8"))
    for suite in result["suites"].values():
        for step in suite["steps"]:
            if step["name"] == name:
                return step
    raise AssertionError(f"no result for step {name}: {result}")


@then('the result file shows step "{name}" failed with "{error}"')
def step_result_file_failed(context, name, error):
    step = _result_file_step(context, name)
    assert step["ok"] is False, step
    assert error in step["error"], step


@then('the result file shows step "{name}" passed')
def step_result_file_passed(context, name):
    step = _result_file_step(context, name)
    assert step["ok"] is True and step["status_code"] == 200, step
