import uuid

import yaml
from behave import given, when, then

from meqa.workspace.config import CONFIG_FILE, load_config


@given("an empty workspace")
def step_empty_workspace(context):
    assert not any(context.workspace.iterdir())


@given("a workspace config file containing:")
def step_config_file(context):
    (context.workspace / CONFIG_FILE).write_text(context.text, encoding="utf-8")


@when("I load the workspace config")
def step_load_config(context):
    context.ws_config = load_config(context.workspace)
    context.first_config = context.ws_config


@when("I load the workspace config again")
def step_load_config_again(context):
    context.ws_config = load_config(context.workspace)


@when("I load the workspace config expecting an error")
def step_load_config_error(context):
    try:
        load_config(context.workspace)
    except Exception as e:
        context.error = e
    else:
        raise AssertionError("load_config did not fail")


@then('the workspace contains only the files "{names}"')
def step_workspace_files(context, names):
    expected = sorted(n.strip() for n in names.split(","))
    actual = sorted(p.name for p in context.workspace.iterdir())
    assert actual == expected, actual


@then("both loads return the same api_key")
def step_same_key(context):
    assert context.first_config["api_key"] == context.ws_config["api_key"]


@then("the api_key is a UUID4")
def step_key_is_uuid4(context):
    assert uuid.UUID(context.ws_config["api_key"]).version == 4


@then("the config file on disk holds that api_key")
def step_key_on_disk(context):
    on_disk = yaml.safe_load((context.workspace / CONFIG_FILE).read_text(encoding="utf-8"))
    assert on_disk == {"api_key": context.ws_config["api_key"]}


@then('the config value "{key}" is "{value}"')
def step_config_value(context, key, value):
    assert context.ws_config[key] == value, context.ws_config


@then('the error is a "{name}"')
def step_error_type(context, name):
    assert context.error is not None, "no error recorded"
    names = [cls.__name__ for cls in type(context.error).__mro__]
    assert name in names, f"{type(context.error).__name__}: {context.error}"
