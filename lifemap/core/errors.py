"""Error taxonomy shared by the generation and adaptation flows."""

from typing import Any


class LifemapError(Exception):
    """Base class for errors raised by the lifemap engine."""


class AuthorizationError(LifemapError):
    """No authenticated user, or the identity could not be verified."""


class NotFoundError(LifemapError):
    """A timeline, mission, or edited item is absent or not owned by the caller."""

    def __init__(self, entity: str, identifier: Any = None):
        self.entity = entity
        self.identifier = identifier
        message = f"{entity} not found" if identifier is None else f"{entity} not found: {identifier}"
        super().__init__(message)


class OracleConfigurationError(LifemapError):
    """The configured generation provider is missing credentials."""


class OracleError(LifemapError):
    """Base class for failures talking to the generation oracle."""


class TransportError(OracleError):
    """The oracle answered with a non-success status."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"Oracle request failed with status {status}")


class MalformedResponseError(OracleError):
    """The oracle answered successfully but without the expected text field."""

    def __init__(self, payload: Any):
        self.payload = payload
        super().__init__("Oracle response is missing generated text")


class ParseError(LifemapError):
    """A bracketed blob was found in the oracle text but is not a JSON array of objects."""

    def __init__(self, raw: str, reason: str = "invalid JSON array"):
        self.raw = raw
        self.reason = reason
        super().__init__(f"Could not parse oracle output: {reason}")


class InvalidInputError(LifemapError):
    """The request is well-formed but cannot be acted on (e.g. empty mission text)."""
