from __future__ import annotations

import json
import os
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import structlog
import yaml

from meqa.bench.assert_engine import AssertEngine
from meqa.bench.data_gen import DataGenerator
from meqa.bench.metrics import Metrics
from meqa.bench.types import Credentials, Expectation, StepResult, TestStep, TestSuite
from meqa.errors import PlanLoadError, SuiteFailedError, SuiteNotFoundError

_PATH_PARAM_RE = re.compile(r"{([^}/]+)}")

log = structlog.get_logger("plan_runner")


def _require_keys(obj: dict, keys: list[str], prefix: str):
    missing = [k for k in keys if k not in obj or obj[k] is None]
    if missing:
        raise PlanLoadError(f"Missing required {prefix} keys: {missing}")


def _mapping(step: dict, key: str, prefix: str) -> Dict[str, Any]:
    value = step.get(key) or {}
    if not isinstance(value, dict):
        raise PlanLoadError(f"{prefix}.{key} must be a mapping")
    return dict(value)


def _parse_step(raw: Any, suite: str, index: int) -> TestStep:
    prefix = f"{suite}[{index}]"
    if not isinstance(raw, dict):
        raise PlanLoadError(f"{prefix} must be a mapping")
    _require_keys(raw, ["method", "path"], prefix)

    method = str(raw["method"]).upper()
    path = str(raw["path"])
    expect = raw.get("expect") or {}
    if not isinstance(expect, dict):
        raise PlanLoadError(f"{prefix}.expect must be a mapping")
    status = expect.get("status", "success")
    if status not in ("success", "fail"):
        try:
            status = int(status)
        except (TypeError, ValueError):
            raise PlanLoadError(f"{prefix}.expect.status must be success, fail or a status code")

    return TestStep(
        name=str(raw.get("name") or f"{method} {path}"),
        method=method,
        path=path,
        path_params=_mapping(raw, "pathParams", prefix),
        query_params=_mapping(raw, "queryParams", prefix),
        header_params=_mapping(raw, "headerParams", prefix),
        form_params=_mapping(raw, "formParams", prefix),
        body=raw.get("bodyParams"),
        expect=Expectation(status=status),
    )


class PlanRunner:
    """
    Loads a test plan and runs its suites against the target API.

    A plan is a YAML stream; every document maps suite names to an ordered
    list of steps. Results accumulate across run() calls and are exposed via
    result_document().
    """

    def __init__(
        self,
        spec_store,
        credentials: Optional[Credentials] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.spec = spec_store
        self.credentials = credentials or Credentials()
        self.transport = transport
        if timeout is None:
            timeout = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
        self.timeout = timeout

        self.suites: List[TestSuite] = []
        self.results: Dict[str, List[StepResult]] = {}
        self.data_gen = DataGenerator(spec_store)
        self.asserts = AssertEngine()
        self.metrics = Metrics()

    def load(self, plan_path) -> None:
        plan_path = Path(plan_path)
        try:
            documents = list(yaml.safe_load_all(plan_path.read_text(encoding="utf-8")))
        except (OSError, yaml.YAMLError) as e:
            raise PlanLoadError(f"can't load test plan {plan_path}: {e}") from e

        for document in documents:
            if document is None:
                continue
            if not isinstance(document, dict):
                raise PlanLoadError(f"test plan document must map suite names to steps, got {type(document).__name__}")
            for name, raw_steps in document.items():
                name = str(name)
                if self.suite(name) is not None:
                    raise PlanLoadError(f"duplicate test suite {name}")
                if not isinstance(raw_steps, list):
                    raise PlanLoadError(f"test suite {name} must be a list of steps")
                steps = [_parse_step(raw, name, i) for i, raw in enumerate(raw_steps)]
                self.suites.append(TestSuite(name=name, steps=steps))

    def suite(self, name: str) -> Optional[TestSuite]:
        for s in self.suites:
            if s.name == name:
                return s
        return None

    def run(self, name: str) -> None:
        suite = self.suite(name)
        if suite is None:
            raise SuiteNotFoundError(name)

        results = self.results.setdefault(name, [])
        with self._client() as client:
            for step in suite.steps:
                result = self._run_step(client, suite.name, step)
                results.append(result)
                log.debug(
                    "step_done",
                    suite=suite.name,
                    step=step.name,
                    status_code=result.status_code,
                    ok=result.ok,
                )

        failures = [r.name for r in results if not r.ok]
        if failures:
            raise SuiteFailedError(name, failures)

    def result_document(self) -> Dict[str, Any]:
        return {
            "suites": {
                name: {
                    "ok": all(r.ok for r in results),
                    "steps": [r.to_dict() for r in results],
                }
                for name, results in self.results.items()
            },
            "summary": self.metrics.aggregate(self.results),
        }

    def _client(self) -> httpx.Client:
        auth = None
        if self.credentials.username:
            auth = httpx.BasicAuth(self.credentials.username, self.credentials.password)
        headers = {"Accept": "application/json"}
        if self.credentials.api_token:
            headers["Authorization"] = f"Bearer {self.credentials.api_token}"
        return httpx.Client(
            auth=auth,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    def _run_step(self, client: httpx.Client, suite: str, step: TestStep) -> StepResult:
        url = ""
        try:
            request = self._build_request(client, step)
            url = str(request.url)
            log.debug("step_request", suite=suite, step=step.name, method=step.method, url=url)

            started = time.perf_counter()
            resp = client.send(request)
            duration_ms = (time.perf_counter() - started) * 1000
        except Exception as e:
            # Anything that stops the request from going out fails this step only.
            return StepResult(
                suite=suite, name=step.name, method=step.method, path=step.path,
                url=url, ok=False, error=f"{type(e).__name__}: {e}",
            )

        ok, reason = self.asserts.check(step.expect, resp.status_code)
        return StepResult(
            suite=suite,
            name=step.name,
            method=step.method,
            path=step.path,
            url=url,
            ok=ok,
            status_code=resp.status_code,
            duration_ms=duration_ms,
            error=reason,
            response=_response_body(resp),
        )

    def _build_request(self, client: httpx.Client, step: TestStep) -> httpx.Request:
        op = self.spec.operation(step.method, step.path) or {}

        path_params = dict(step.path_params)
        for param in self.spec.parameters(op, "path") if op else []:
            if param.get("name") not in path_params:
                path_params[param["name"]] = self.data_gen.parameter_value(param)

        def fill(match):
            name = match.group(1)
            if path_params.get(name) is None:
                raise ValueError(f"missing path parameter {name}")
            return str(path_params[name])

        url = self.spec.base_url + _PATH_PARAM_RE.sub(fill, step.path)

        body = step.body
        if body is None and not step.form_params and op:
            schema = self.spec.body_schema(op)
            if schema is not None:
                body = self.data_gen.generate(schema)

        kwargs: Dict[str, Any] = {
            "params": step.query_params or None,
            "headers": {k: str(v) for k, v in step.header_params.items()} or None,
        }
        if step.form_params:
            kwargs["data"] = step.form_params
        elif body is not None:
            kwargs["json"] = body
        return client.build_request(step.method, url, **kwargs)


def _response_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return resp.text
