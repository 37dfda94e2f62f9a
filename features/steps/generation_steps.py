import json

import httpx
from behave import given, when, then

from meqa.generate.client import GenerationClient
from meqa.workspace.config import load_config

SERVER = "http://generator.test"


def _install_service(context, handler):
    context.requests = []

    def record(request):
        context.requests.append(request)
        return handler(request)

    context.transport = httpx.MockTransport(record)


@given('a swagger file "{name}" containing:')
def step_swagger_file(context, name):
    (context.workspace / name).write_text(context.text, encoding="utf-8")


@given('the workspace has a directory named "{name}"')
def step_workspace_dir(context, name):
    (context.workspace / name).mkdir()


@given("the generation service answers {status:d} with JSON:")
def step_service_json(context, status):
    body = context.text
    _install_service(context, lambda request: httpx.Response(status, text=body))


@given('the generation service answers {status:d} with body "{body}"')
def step_service_body(context, status, body):
    _install_service(context, lambda request: httpx.Response(status, text=body))


@given('the generation service redirects to "{location}" and then answers 200 with JSON:')
def step_service_redirect(context, location):
    body = context.text

    def handler(request):
        if request.url.path == location:
            return httpx.Response(200, text=body)
        return httpx.Response(307, headers={"Location": SERVER + location})

    _install_service(context, handler)


@given("the generation service redirects forever")
def step_service_redirect_loop(context):
    def handler(request):
        hop = len(context.requests)
        return httpx.Response(307, headers={"Location": f"{SERVER}/hop/{hop}"})

    _install_service(context, handler)


@when('I generate test plans from "{name}"')
def step_generate(context, name):
    client = GenerationClient(server_url=SERVER, transport=context.transport)
    try:
        client.generate(context.workspace, context.workspace / name)
    except Exception as e:
        context.error = e


@then("generation succeeds")
def step_generation_ok(context):
    assert context.error is None, repr(context.error)


@then('generation fails with a "{name}"')
def step_generation_failed(context, name):
    assert context.error is not None, "generation did not fail"
    names = [cls.__name__ for cls in type(context.error).__mro__]
    assert name in names, f"{type(context.error).__name__}: {context.error}"


@then('the error carries status {status:d} and body "{body}"')
def step_error_status_body(context, status, body):
    assert context.error.status == status
    assert context.error.body == body
    assert body in str(context.error)


@then("the error carries status {status:d}")
def step_error_status(context, status):
    assert context.error.status == status


@then('the workspace file "{name}" contains "{text}"')
def step_workspace_file(context, name, text):
    content = (context.workspace / name).read_text(encoding="utf-8")
    assert text in content, content


@then('the workspace has no file "{name}"')
def step_no_workspace_file(context, name):
    assert not (context.workspace / name).exists()


@then("the service received the workspace api_key and the swagger text")
def step_service_payload(context):
    assert len(context.requests) == 1
    request = context.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/specs"
    payload = json.loads(request.content)
    assert payload["api_key"] == load_config(context.workspace)["api_key"]
    assert payload["swagger"] == (context.workspace / "swagger.yaml").read_text(encoding="utf-8")


@then("the service received no request")
def step_service_no_request(context):
    assert context.requests == []


@then("the service received {count:d} requests")
def step_service_request_count(context, count):
    assert len(context.requests) == count, len(context.requests)
