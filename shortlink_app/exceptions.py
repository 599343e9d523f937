"""
Error taxonomy for the short link core.

Creation-time errors (alias problems, code exhaustion) and resolution-time
errors (not found, expired) are raised to the caller; the API layer maps them
onto HTTP status codes. Enrichment and cache problems never leave their
component.
"""


class ShortLinkError(Exception):
    """Base class for all short link errors."""


class AliasInvalidError(ShortLinkError):
    """Raised when a custom alias violates the charset or length rules."""


class AliasTakenError(ShortLinkError):
    """Raised when a custom alias is already owned by a link (active or not)."""


class CodeGenerationExhaustedError(ShortLinkError):
    """Raised when no unique code could be persisted within the retry budget."""


class NotFoundError(ShortLinkError):
    """Raised when no (active) short link exists for a code."""


class ExpiredError(ShortLinkError):
    """Raised when a short link's expiry has passed."""


class ServiceUnavailableError(ShortLinkError):
    """Raised when the durable store cannot serve a request."""


class DuplicateShortCodeError(ShortLinkError):
    """Raised by the store when an insert violates a uniqueness constraint."""


class EnrichmentDegraded(ShortLinkError):
    """Visitor enrichment failed; defaults are substituted. Never surfaced."""
