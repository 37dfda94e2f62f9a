import io
import shlex
from contextlib import redirect_stdout

import yaml
from behave import when, then

from meqa.cli import main


@when('I run mqgo with ""')
@when('I run mqgo with "{args}"')
def step_run_mqgo(context, args=""):
    argv = shlex.split(args.replace("{ws}", str(context.workspace)))
    out = io.StringIO()
    with redirect_stdout(out):
        context.exit_code = main(argv)
    context.output = out.getvalue()


@then("the exit code is {code:d}")
def step_exit_code(context, code):
    assert context.exit_code == code, (context.exit_code, context.output)


@then('the output mentions "{text}"')
def step_output_mentions(context, text):
    assert text in context.output, context.output


@then('the result file lists suites "{names}" as failed')
def step_result_failed(context, names):
    result = yaml.safe_load((context.workspace / "result.yaml").read_text(encoding="utf-8"))
    assert "stale" not in result
    expected = [n.strip() for n in names.split(",")]
    assert list(result["suites"]) == expected, result
    assert all(not suite["ok"] for suite in result["suites"].values())


@then('the output mentions "{text}" once')
def step_output_mentions_once(context, text):
    assert context.output.count(text) == 1, context.output
