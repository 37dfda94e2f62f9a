from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class Credentials:
    username: str = ""
    password: str = ""
    api_token: str = ""


@dataclass
class Expectation:
    status: Any = "success"   # "success" | "fail" | exact status code


@dataclass
class TestStep:
    name: str
    method: str                # upper case, e.g. "POST"
    path: str                  # path template, e.g. "/pet/{petId}"
    path_params: Dict[str, Any] = field(default_factory=dict)
    query_params: Dict[str, Any] = field(default_factory=dict)
    header_params: Dict[str, Any] = field(default_factory=dict)
    form_params: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    expect: Expectation = field(default_factory=Expectation)


@dataclass
class TestSuite:
    name: str
    steps: List[TestStep]


@dataclass
class StepResult:
    suite: str
    name: str
    method: str
    path: str
    url: str
    ok: bool
    status_code: Optional[int] = None
    duration_ms: float = 0.0
    error: Optional[str] = None
    response: Any = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "name": self.name,
            "method": self.method,
            "path": self.path,
            "url": self.url,
            "ok": self.ok,
            "status_code": self.status_code,
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.error is not None:
            out["error"] = self.error
        if self.response is not None:
            out["response"] = self.response
        return out


@dataclass
class RunContext:
    """Everything one `run` invocation carries between prepare/run/finalize."""
    spec_path: Path
    workspace_dir: Path
    plan_path: Path
    credentials: Credentials
    spec_store: Any            # SpecStore or a stand-in with the same surface
    plan_runner: Any           # PlanRunner or a stand-in with the same surface
    load_errors: List[str] = field(default_factory=list)
