"""Error types for did-web.

Every precondition violation in the core is raised synchronously to the
caller; nothing here is retried or recovered from.
"""


class DidWebError(Exception):
    """Base exception for did-web operations."""


class InvalidInputError(DidWebError):
    """Caller supplied a missing or malformed value."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class InvalidDIDError(DidWebError):
    """DID format is invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid DID format: {message}")


class DuplicateServiceIdError(DidWebError):
    """Two service entries map to the same fragment id."""

    def __init__(self, fragment: str) -> None:
        self.fragment = fragment
        super().__init__(f"Duplicate service id: #{fragment}")


class KeyMaterialError(DidWebError):
    """Key or certificate generation, loading or export failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Key error: {message}")


class SerializationError(DidWebError):
    """Serialization or canonicalization failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Serialization error: {message}")


class PublishError(DidWebError):
    """Document or certificate could not be published."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Publish error: {message}")
