from typing import Optional


class DepscopeError(Exception):
    """Base class for every error raised by depscope."""


class ConfigurationError(DepscopeError):
    pass


class ResolutionError(DepscopeError):
    """A scope, or a single dependency probe, could not be resolved."""


class ScopeResolutionError(ResolutionError):
    """Resolution still failed after every fallback attempt."""

    def __init__(self, module: str, scope: str, cause: Optional[Exception] = None) -> None:
        message = f"Could not resolve scope '{scope}' of module '{module}'"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.module = module
        self.scope = scope


class ProviderError(DepscopeError):
    """The vulnerability data provider failed."""


class ConnectivityError(ProviderError):
    pass


class CredentialsError(ProviderError):
    pass


class VulnerabilitiesDetected(DepscopeError):
    def __init__(self, count: int) -> None:
        super().__init__(f"Vulnerabilities detected in {count} dependencies, check log output to review them")
        self.count = count


class ReportError(DepscopeError):
    """A report payload could not be written."""
