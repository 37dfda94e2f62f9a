# schema -> value: example > default > enum[0] > type placeholder.

_PLACEHOLDERS = {
    "string": "meqa",
    "integer": 1,
    "number": 1.0,
    "boolean": True,
}

_MAX_DEPTH = 8


class DataGenerator:
    def __init__(self, spec_store) -> None:
        self.spec = spec_store

    def generate(self, schema, depth: int = 0):
        schema = self.spec.resolve(schema or {})
        if not isinstance(schema, dict) or depth > _MAX_DEPTH:
            return None

        if "example" in schema:
            return schema["example"]
        if "default" in schema:
            return schema["default"]
        if schema.get("enum"):
            return schema["enum"][0]

        for combo in ("allOf", "oneOf", "anyOf"):
            if schema.get(combo):
                if combo != "allOf":
                    return self.generate(schema[combo][0], depth + 1)
                merged = {}
                for part in schema["allOf"]:
                    value = self.generate(part, depth + 1)
                    if isinstance(value, dict):
                        merged.update(value)
                return merged

        kind = schema.get("type")
        if kind == "object" or (kind is None and "properties" in schema):
            # Only required fields; optional ones are left to the plan.
            props = schema.get("properties") or {}
            return {
                name: self.generate(props.get(name, {}), depth + 1)
                for name in schema.get("required") or []
            }
        if kind == "array":
            item = self.generate(schema.get("items") or {}, depth + 1)
            return [] if item is None else [item]
        return _PLACEHOLDERS.get(kind)

    def parameter_value(self, param: dict):
        # Swagger 2 keeps type info on the parameter itself, OpenAPI 3 under "schema".
        if "schema" in param:
            return self.generate(param["schema"])
        return self.generate({k: v for k, v in param.items() if k not in ("name", "in", "required")})
