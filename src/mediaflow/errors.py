"""Exception hierarchy for mediaflow.

Stage-local errors (``StageError`` and subclasses) are caught by the pipeline
and recorded as a capability status. Anything else escaping a stage is
treated as fatal and re-raised to the trigger for retry.
"""

from __future__ import annotations


class MediaflowError(Exception):
    """Base class for all mediaflow errors."""

    pass


class MissingIdentifierError(MediaflowError):
    """No stable asset identifier can be derived for an event.

    The event is dropped: retrying cannot produce a content hash.
    """

    pass


class StageError(MediaflowError):
    """Error confined to a single processing stage."""

    pass


class ExternalServiceError(StageError):
    """A managed analysis or storage service call failed."""

    pass


class UnsupportedCodecError(StageError):
    """Audio codec cannot be mapped to a speech recognition encoding."""

    pass


class IngestError(StageError):
    """Error probing or reading a local media file."""

    pass


class TranscoderError(IngestError):
    """The ffmpeg transcoder failed to start or exited non-zero."""

    pass


class MetadataStoreError(MediaflowError):
    """Error reading or writing the metadata store."""

    pass


class TransportParseError(MediaflowError):
    """A queue message could not be decoded into an extraction request."""

    pass


class InvalidTransitionError(MediaflowError, ValueError):
    """A status field was moved along an edge the state machine forbids."""

    pass


class FatalPipelineError(MediaflowError):
    """Unexpected error that escaped the dispatcher's top-level boundary."""

    pass
