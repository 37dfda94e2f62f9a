class MeqaError(Exception):
    """Base class for every error mqgo raises on purpose."""


class ConfigError(MeqaError):
    pass


class ConfigParseError(ConfigError):
    pass


class ValidationError(MeqaError):
    pass


class _RemoteError(MeqaError):
    def __init__(self, message: str, status: int, body: str) -> None:
        super().__init__(f"{message}, status {status}, body:\n{body}")
        self.status = status
        self.body = body


class ServiceError(_RemoteError):
    """Generation service answered with a status >= 300."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__("server call failed", status, body)


class ProtocolError(_RemoteError):
    """Generation service answered, but not with a usable document."""

    def __init__(self, status: int, body: str, reason: str = "unusable response") -> None:
        super().__init__(f"server call failed ({reason})", status, body)
        self.reason = reason


class SpecLoadError(MeqaError):
    pass


class PlanLoadError(MeqaError):
    pass


class SuiteNotFoundError(MeqaError):
    def __init__(self, name: str) -> None:
        super().__init__(f"test suite not found: {name}")
        self.name = name


class SuiteFailedError(MeqaError):
    def __init__(self, name: str, failures: list[str]) -> None:
        super().__init__(f"test suite {name} failed: {', '.join(failures)}")
        self.name = name
        self.failures = failures
