"""mqgo command line: `generate` test plans, then `run` them."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import httpx

from meqa.bench.orchestrator import RUN_ALL, ExecutionOrchestrator
from meqa.bench.types import Credentials
from meqa.common.logging import configure_structlog, workspace_logger
from meqa.errors import MeqaError, ValidationError
from meqa.generate.client import ANNOTATED_SPEC_FILE, GenerationClient

MEQA_DATA_DIR = "meqa_data"
SWAGGER_FILE = "swagger.yaml"
RESULT_FILE = "result.yaml"
COMMANDS = ("generate", "run")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mqgo",
        description="generate: generate test plans to be used by run command\n"
                    "run: run the tests in a test plan file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command")

    gen = sub.add_parser("generate", help="generate test plans to be used by run command")
    gen.add_argument("-d", dest="meqa_path", default=MEQA_DATA_DIR,
                     help="the directory where we put meqa temp files and logs")
    gen.add_argument("-s", dest="swagger", default=None,
                     help="the swagger.yaml file name (default: <dir>/swagger.yaml)")

    run = sub.add_parser("run", help="run the tests in a test plan file")
    run.add_argument("-d", dest="meqa_path", default=MEQA_DATA_DIR,
                     help="the directory where we put meqa temp files and logs")
    run.add_argument("-s", dest="swagger", default=None,
                     help="the swagger.yaml file name (default: <dir>/swagger_meqa.yaml)")
    run.add_argument("-p", dest="plan", default="", help="the test plan file name")
    run.add_argument("-r", dest="result", default=None,
                     help="the test result file name (default: <dir>/result.yaml)")
    run.add_argument("-t", dest="target", default=RUN_ALL, help="the test to run")
    run.add_argument("-u", dest="username", default="", help="the username for basic HTTP authentication")
    run.add_argument("-w", dest="password", default="", help="the password for basic HTTP authentication")
    run.add_argument("-a", dest="api_token", default="", help="the api token for bearer HTTP authentication")
    run.add_argument("-v", dest="verbose", action="store_true", help="turn on verbose mode")
    run.add_argument("-x", dest="strict", action="store_true",
                     help="abort when the swagger or test plan file fails to load")
    return parser


def _check_workspace(swagger: Path, meqa_path: Path) -> bool:
    if not swagger.exists():
        print(f"can't load swagger file at the following location {swagger}")
        return False
    if not meqa_path.exists():
        print(f"specified meqa directory {meqa_path} doesn't exist.")
        return False
    if not meqa_path.is_dir():
        print(f"specified meqa directory {meqa_path} is not a directory.")
        return False
    return True


def cmd_generate(args, argv) -> int:
    meqa_path = Path(args.meqa_path)
    if not _check_workspace(Path(args.swagger), meqa_path):
        return 0
    file_log = workspace_logger(meqa_path)
    file_log.info("invoked", argv=argv)

    try:
        GenerationClient().generate(meqa_path, args.swagger)
    except (MeqaError, OSError, httpx.HTTPError) as e:
        file_log.error("generate_failed", error=str(e))
        print(f"❌ got an err:\n{e}")
        return 1

    print(f"✨ Test plans written to {meqa_path}")
    return 0


def cmd_run(args, argv) -> int:
    if not args.plan:
        print("You must use -p to specify a test plan file. Use -h to see more options.")
        return 0

    def open_log(workspace_dir):
        file_log = workspace_logger(workspace_dir)
        file_log.info("invoked", argv=argv)
        return file_log

    orchestrator = ExecutionOrchestrator(file_log_factory=open_log, strict=args.strict)
    credentials = Credentials(
        username=args.username,
        password=args.password,
        api_token=args.api_token,
    )
    try:
        ctx = orchestrator.prepare(args.swagger, args.meqa_path, args.plan, credentials)
    except ValidationError as e:
        print(e)
        return 0

    orchestrator.run(ctx, args.target)
    try:
        orchestrator.finalize(ctx, args.result)
    except OSError as e:
        orchestrator.file_log.error("finalize_failed", path=str(args.result), error=str(e))
        print(f"❌ can't write test result file {args.result}:\n{e}")
        return 1

    print(f"\n📄 Results written to {args.result}")
    return 0


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()

    if not argv or argv[0] not in COMMANDS:
        parser.print_help()
        return 1

    args = parser.parse_args(argv)
    configure_structlog(verbose=getattr(args, "verbose", False))

    if args.command == "generate":
        if args.swagger is None:
            args.swagger = os.path.join(args.meqa_path, SWAGGER_FILE)
        return cmd_generate(args, argv)

    if args.swagger is None:
        args.swagger = os.path.join(args.meqa_path, ANNOTATED_SPEC_FILE)
    if args.result is None:
        args.result = os.path.join(args.meqa_path, RESULT_FILE)
    return cmd_run(args, argv)
