import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from meqa.errors import SpecLoadError

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch")


def _parse_ref(ref: str):
    """
    Support both:
      - #/components/schemas/Foo (OpenAPI3)
      - #/definitions/Bar       (Swagger2)
    Returns tuple(kind, name) where kind in {"schema", "definition"}.
    """
    if ref.startswith("#/components/schemas/"):
        return ("schema", ref.split("/", 3)[3])
    if ref.startswith("#/definitions/"):
        return ("definition", ref.split("/", 2)[2])
    return (None, None)


class SpecStore:
    """
    Holds the parsed API spec the plan runs against.

    Only what running a plan needs: the base URL, an operation index keyed
    by (METHOD, path template) and local $ref resolution for schemas.
    """

    def __init__(self) -> None:
        self.spec_path: Optional[str] = None
        self.document: Dict[str, Any] = {}
        self.is_swagger2 = False
        self.operations: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._base_url = ""

    def load(self, spec_path) -> None:
        spec_path = Path(spec_path)
        try:
            document = yaml.safe_load(spec_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise SpecLoadError(f"can't load swagger file {spec_path}: {e}") from e
        if not isinstance(document, dict):
            raise SpecLoadError(f"swagger file {spec_path} is not a mapping")

        self.spec_path = str(spec_path)
        self.document = document

        is_swagger2 = isinstance(document.get("swagger"), str) and document["swagger"].startswith("2.")
        is_openapi3 = isinstance(document.get("openapi"), str) and document["openapi"].startswith("3.")
        if not (is_swagger2 or is_openapi3):
            # Heuristic fallback
            is_swagger2 = "definitions" in document and "paths" in document
        self.is_swagger2 = is_swagger2

        self._base_url = self._base_url_from_document()
        self._index_operations()

    @property
    def base_url(self) -> str:
        override = os.getenv("MEQA_TARGET_URL", "").strip()
        return (override or self._base_url).rstrip("/")

    def _base_url_from_document(self) -> str:
        doc = self.document
        if self.is_swagger2:
            host = doc.get("host")
            if not host:
                return doc.get("basePath", "") or ""
            schemes = doc.get("schemes") or ["http"]
            return f"{schemes[0]}://{host}{doc.get('basePath', '') or ''}"

        servers = doc.get("servers") or []
        if servers and isinstance(servers[0], dict):
            return servers[0].get("url", "") or ""
        return ""

    def _index_operations(self) -> None:
        self.operations = {}
        for path, methods in (self.document.get("paths", {}) or {}).items():
            if not isinstance(methods, dict):
                continue
            shared = methods.get("parameters") or []
            for method, details in methods.items():
                if method.lower() not in HTTP_METHODS or not isinstance(details, dict):
                    continue
                op = dict(details)
                if shared:
                    own = {(p.get("name"), p.get("in")) for p in op.get("parameters") or [] if isinstance(p, dict)}
                    op["parameters"] = list(op.get("parameters") or []) + [
                        p for p in shared if isinstance(p, dict) and (p.get("name"), p.get("in")) not in own
                    ]
                self.operations[(method.upper(), path)] = op

    def operation(self, method: str, path: str) -> Optional[Dict[str, Any]]:
        return self.operations.get((method.upper(), path))

    def resolve(self, schema: Any) -> Any:
        seen = set()
        while isinstance(schema, dict) and "$ref" in schema:
            ref = schema["$ref"]
            if ref in seen:
                raise SpecLoadError(f"circular $ref {ref}")
            seen.add(ref)

            kind, name = _parse_ref(ref)
            if kind == "definition":
                schema = (self.document.get("definitions") or {}).get(name)
            elif kind == "schema":
                schema = ((self.document.get("components") or {}).get("schemas") or {}).get(name)
            else:
                raise SpecLoadError(f"unsupported $ref {ref}")
            if schema is None:
                raise SpecLoadError(f"dangling $ref {ref}")
        return schema

    def body_schema(self, operation: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.is_swagger2:
            for param in operation.get("parameters") or []:
                if isinstance(param, dict) and param.get("in") == "body":
                    return self.resolve(param.get("schema") or {})
            return None

        content = ((operation.get("requestBody") or {}).get("content") or {})
        media = content.get("application/json") or next(iter(content.values()), None)
        if not media or "schema" not in media:
            return None
        return self.resolve(media["schema"])

    def parameters(self, operation: Dict[str, Any], location: str):
        return [
            p for p in operation.get("parameters") or []
            if isinstance(p, dict) and p.get("in") == location
        ]
