import json
import os

import httpx
from behave import given, when, then

from meqa.bench.plan_runner import PlanRunner
from meqa.bench.types import Credentials
from meqa.errors import MeqaError
from meqa.sut.spec_store import SpecStore


def _target_handler(context):
    def handle(request):
        context.target_requests.append(request)
        status = context.target_overrides.get((request.method, request.url.path), 200)
        return httpx.Response(status, json={"status": status})
    return handle


def _build_runner(context):
    spec_path = context.workspace / "swagger.yaml"
    spec_path.write_text(context.spec_text, encoding="utf-8")
    store = SpecStore()
    store.load(spec_path)
    context.runner = PlanRunner(
        store,
        getattr(context, "credentials", None),
        transport=httpx.MockTransport(_target_handler(context)),
        timeout=5.0,
    )
    return context.runner


@given("the swagger spec:")
def step_swagger_spec(context):
    context.spec_text = context.text


@given("the target API answers every request with {status:d}")
def step_target_default(context, status):
    context.target_requests = []
    context.target_overrides = {}


@given('the target API answers "{method} {path}" with {status:d}')
def step_target_override(context, method, path, status):
    context.target_overrides[(method, path)] = status


@given('the credentials "{username}" / "{password}"')
def step_credentials(context, username, password):
    context.credentials = Credentials(username=username, password=password)


@given('the api token "{token}"')
def step_api_token(context, token):
    context.credentials = Credentials(api_token=token)


@given('the environment variable "{key}" is "{value}"')
def step_env(context, key, value):
    os.environ[key] = value


@given("the test plan file:")
def step_plan_file(context):
    context.plan_path = context.workspace / "plan.yaml"
    context.plan_path.write_text(context.text, encoding="utf-8")


@given("the test plan:")
def step_plan(context):
    step_plan_file(context)
    _build_runner(context).load(context.plan_path)


@when("I load the plan expecting an error")
def step_load_plan_error(context):
    try:
        _build_runner(context).load(context.plan_path)
    except MeqaError as e:
        context.error = e


@when('I run the suite "{name}"')
def step_run_suite(context, name):
    try:
        context.runner.run(name)
    except MeqaError as e:
        context.error = e


@then("the suite passes")
def step_suite_passes(context):
    assert context.error is None, context.error


@then('the suite fails naming "{names}"')
def step_suite_fails(context, names):
    assert type(context.error).__name__ == "SuiteFailedError", repr(context.error)
    assert context.error.failures == [n.strip() for n in names.split(",")]


@then('the run fails with a "{name}"')
def step_run_fails(context, name):
    assert type(context.error).__name__ == name, repr(context.error)


def _find_request(context, request_line):
    method, url = request_line.split(" ", 1)
    for request in context.target_requests:
        if request.method == method and str(request.url) == url:
            return request
    sent = [f"{r.method} {r.url}" for r in context.target_requests]
    raise AssertionError(f"{request_line} not sent; sent: {sent}")


@then('the target received "{request_line}" with JSON {body}')
def step_target_received_json(context, request_line, body):
    request = _find_request(context, request_line)
    assert json.loads(request.content) == json.loads(body), request.content


@then('the target received "{request_line}"')
def step_target_received(context, request_line):
    _find_request(context, request_line)


@then("the target received no request")
def step_target_no_request(context):
    assert context.target_requests == []


@then('every request carried the header "{header}" = "{value}"')
def step_every_request_header(context, header, value):
    assert context.target_requests
    for request in context.target_requests:
        assert request.headers.get(header) == value, request.headers


@then('the plan has suites "{names}"')
def step_plan_suites(context, names):
    assert [s.name for s in context.runner.suites] == [n.strip() for n in names.split(",")]


@then('the result document marks suite "{name}" as failed')
def step_result_suite_failed(context, name):
    assert context.runner.result_document()["suites"][name]["ok"] is False


def _result_step(context, name):
    for suite in context.runner.result_document()["suites"].values():
        for step in suite["steps"]:
            if step["name"] == name:
                return step
    raise AssertionError(f"no result for step {name}")


@then('the result step "{name}" is ok with status {status:d}')
def step_result_ok(context, name, status):
    step = _result_step(context, name)
    assert step["ok"] is True and step["status_code"] == status, step


@then('the result step "{name}" is not ok with status {status:d}')
def step_result_not_ok(context, name, status):
    step = _result_step(context, name)
    assert step["ok"] is False and step["status_code"] == status, step
    assert "expected status success" in step["error"]


@then("the result summary counts {steps:d} steps, {passed:d} passed and {failed:d} failed")
def step_result_summary(context, steps, passed, failed):
    summary = context.runner.result_document()["summary"]
    assert (summary["steps"], summary["passed"], summary["failed"]) == (steps, passed, failed), summary
    assert "p95_ms" in summary
