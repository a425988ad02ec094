"""Error kinds raised or collected by the citation engine."""

from __future__ import annotations

from typing import Optional


class CitationEngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(CitationEngineError, ValueError):
    """Raised for an unknown style id or invalid settings."""


class ValidationError(CitationEngineError):
    """Raised when a reference lacks a field required before persistence."""


class ValidationWarning(UserWarning):
    """Emitted when a reference renders with a placeholder for a required field."""


class MetadataRetrievalError(CitationEngineError):
    """Raised when metadata could not be retrieved or parsed."""


class LookupNotFound(MetadataRetrievalError):
    """The provider answered definitively that the identifier is unknown."""


class LookupServiceUnavailable(MetadataRetrievalError):
    """The provider could not be reached or failed after a retry."""


class ParseError(CitationEngineError):
    """A single malformed entry in an imported batch."""

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"entry {index}: {reason}")
        self.index = index
        self.reason = reason

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParseError):
            return NotImplemented
        return (self.index, self.reason) == (other.index, other.reason)

    def __hash__(self) -> int:
        return hash((self.index, self.reason))


class SerializationError(CitationEngineError):
    """A field that has no slot in the target exchange format."""

    def __init__(self, reference_id: Optional[str], field: str, reason: str) -> None:
        super().__init__(f"{reference_id or '<unknown>'}: {field}: {reason}")
        self.reference_id = reference_id
        self.field = field
        self.reason = reason
