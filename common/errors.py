"""Error taxonomy shared by the gateway and the transcription service."""

from __future__ import annotations


class TranscriptorError(Exception):
    """Base class for all errors raised by this project."""


class ValidationError(TranscriptorError):
    """Upload rejected by policy (MIME type, size). Client-facing, never retried."""


class InvalidInputError(TranscriptorError):
    """A core operation was called with arguments outside its domain."""


class TranscriptionServiceError(TranscriptorError):
    """The generative transcription service failed for one chunk."""


class ParseError(TranscriptorError):
    """A model reply could not be turned into segments at all."""


class PipelineFatalError(TranscriptorError):
    """Normalization or duration detection failed; the whole run is aborted."""
