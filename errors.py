"""
errors.py — Exception types shared across the CityBreaker backend.

Upstream errors (anything an external collaborator did wrong) map to HTTP 502
on the synchronous endpoint and to a FAILED job in the PDF pipeline.
StoreError is raised by the document-store backends; the caches catch it and
degrade to a miss, the job store lets it propagate.
"""


class CityBreakerError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(CityBreakerError):
    """The document store could not be read or written."""


class UpstreamError(CityBreakerError):
    """An external collaborator failed."""


class GenerationError(UpstreamError):
    """The generative model call failed or timed out."""


class ItineraryParseError(GenerationError):
    """The model answered, but its output does not match the expected schema."""

    def __init__(self, message: str, raw_text: str = '', context: dict | None = None):
        super().__init__(message, context)
        self.raw_text = raw_text


class PlaceLookupError(UpstreamError):
    """A maps-provider lookup failed."""


class RenderError(UpstreamError):
    """The PDF renderer failed."""


class StorageError(UpstreamError):
    """The artifact could not be stored or its URL could not be issued."""
