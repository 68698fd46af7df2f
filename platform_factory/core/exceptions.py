"""
Platform-wide exception hierarchy.

Services raise these types; blueprints and the app-level handlers in
``platform_factory.utils.errors`` map them to HTTP responses once, so every
endpoint answers with the same status codes and body shape.

Only policy violations (auth, rate limit, malformed request, unknown id)
ever reach a client. ``UpstreamModelError`` is always caught inside the
analysis components and routed to their deterministic fallback, and
``BuildError`` is recorded on the build instead of being raised to the
HTTP layer.

Usage:
    from platform_factory.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Build", resource_id="build_1f3a")
    raise ValidationError("text is required", details={"text": "missing"})
"""


class AuthError(Exception):
    """Raised when the request carries no usable caller identity.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(AuthError):
    """Raised when the caller is authenticated but not allowed here.

    The analysis pipeline is restricted to the designated owner account;
    every other identity gets this error. Maps to HTTP 403.
    """

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class RateLimitError(Exception):
    """Raised when a caller exceeds the request budget for its window.

    Args:
        retry_after: Seconds until the caller may retry (1..window).
    """

    def __init__(self, retry_after: int, message: str = "Too many requests") -> None:
        self.retry_after = retry_after
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Build").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when request input is missing or malformed.

    Raised before any LLM call is attempted. Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation is invalid for the resource's current state.

    Used for illegal build lifecycle transitions and for packaging a build
    that is not complete. Maps to HTTP 409.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class UpstreamModelError(Exception):
    """Raised when the generative model cannot produce a usable answer.

    Never surfaced to callers: the analyzer and synthesizer catch it and
    switch to their heuristic path.

    Args:
        message: What went wrong.
        kind: One of "upstream_error", "timeout", "unparseable",
              "invalid_schema".
    """

    KINDS = ("upstream_error", "timeout", "unparseable", "invalid_schema")

    def __init__(self, message: str, kind: str = "upstream_error") -> None:
        if kind not in self.KINDS:
            kind = "upstream_error"
        self.kind = kind
        super().__init__(message)


class BuildError(Exception):
    """Raised by the code generation engine when a scaffold cannot be produced.

    The build registry records the message on the ``BuildResult`` and marks
    the build as ``error``.
    """
