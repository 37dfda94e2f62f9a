import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import structlog

from meqa.errors import ConfigError, ProtocolError, ServiceError
from meqa.workspace.config import CONFIG_API_KEY, config_path, load_config

SERVER_URL = "http://localhost:8888"
ANNOTATED_SPEC_FILE = "swagger_meqa.yaml"
PLAN_SUFFIX = ".yaml"
FILE_MODE = 0o644

# Some spec hosting endpoints bounce through several redirects before
# serving content.
MAX_REDIRECTS = 15

log = structlog.get_logger("generate")


class GenerationClient:
    """
    Talks to the remote generation service.

    The service takes the raw swagger text plus the workspace api_key and
    answers with an annotated spec and a set of named test plans, which are
    written into the workspace as plain YAML files.
    """

    def __init__(
        self,
        server_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.server_url = (server_url or os.getenv("MEQA_SERVER_URL") or SERVER_URL).rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.Client:
        return httpx.Client(
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            timeout=self.timeout,
            transport=self.transport,
        )

    def generate(self, workspace_dir, swagger_path) -> None:
        workspace_dir = Path(workspace_dir)

        config = load_config(workspace_dir)
        if config.get(CONFIG_API_KEY) is None:
            raise ConfigError(f"api_key not found in {config_path(workspace_dir)}")

        swagger_text = Path(swagger_path).read_text(encoding="utf-8")

        body = {
            "api_key": config[CONFIG_API_KEY],
            "swagger": swagger_text,
        }
        url = f"{self.server_url}/specs"
        log.info("generate_request", url=url, swagger=str(swagger_path))

        with self._client() as client:
            resp = client.post(url, json=body)

        if resp.status_code >= 300:
            raise ServiceError(resp.status_code, resp.text)

        payload = self._parse(resp)
        self._publish(workspace_dir, payload, resp)

    def _parse(self, resp: httpx.Response) -> Dict[str, Any]:
        # A 2xx alone doesn't mean the service produced anything usable.
        try:
            payload = json.loads(resp.text)
        except ValueError:
            raise ProtocolError(resp.status_code, resp.text, "body is not JSON")

        if not isinstance(payload, dict):
            raise ProtocolError(resp.status_code, resp.text, "body is not a JSON object")
        if not isinstance(payload.get("swagger_meqa"), str):
            raise ProtocolError(resp.status_code, resp.text, "swagger_meqa missing")
        return payload

    def _publish(self, workspace_dir: Path, payload: Dict[str, Any], resp: httpx.Response) -> None:
        """
        Write the annotated spec, then one file per plan.

        Not atomic: a failure half way leaves the files written so far on
        disk and skips the rest.
        """
        _write(workspace_dir / ANNOTATED_SPEC_FILE, payload["swagger_meqa"])
        log.info("wrote_annotated_spec", path=str(workspace_dir / ANNOTATED_SPEC_FILE))

        plans = payload.get("test_plans")
        if plans is None:
            plans = {}
        if not isinstance(plans, dict):
            raise ProtocolError(resp.status_code, resp.text, "test_plans is not an object")

        for plan_name, plan_text in plans.items():
            if not plan_name or "/" in plan_name or os.sep in plan_name:
                raise ProtocolError(resp.status_code, resp.text, f"bad plan name {plan_name!r}")
            if not isinstance(plan_text, str):
                raise ProtocolError(resp.status_code, resp.text, f"plan {plan_name} is not text")

            plan_path = workspace_dir / f"{plan_name}{PLAN_SUFFIX}"
            _write(plan_path, plan_text)
            log.info("wrote_test_plan", plan=plan_name, path=str(plan_path))


def _write(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")
    path.chmod(FILE_MODE)
