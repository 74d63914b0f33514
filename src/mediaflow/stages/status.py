"""Per-capability status tracking.

Each invocation builds fresh trackers, so a record that already reads
``success`` can be processed again. Within one invocation the trackers only
allow these edges::

    pending -> processing -> success | no_results | error
                          -> no_transcription          (speech only)
    pending -> skipped_no_transcript                    (topics only)

and, for the overall status, ``In Progress -> Completed | Failed``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from mediaflow.errors import InvalidTransitionError
from mediaflow.models.schema import ApiStatus, MediaKind, OverallStatus, ProcessingError


class Capability(str, Enum):
    """An analysis capability with its own status field."""

    VISION = "vision"
    VIDEO = "video"
    SPEECH = "speech"
    TOPICS = "topics"

    @property
    def status_field(self) -> str:
        return f"{self.value}_status"

    @property
    def error_field(self) -> str:
        return f"{self.value}_error"


# Capability whose failure fails the whole step for each path
PRIMARY_CAPABILITY: dict[MediaKind, Capability] = {
    MediaKind.IMAGE: Capability.VISION,
    MediaKind.VIDEO: Capability.VIDEO,
    MediaKind.AUDIO: Capability.SPEECH,
}

_TRANSITIONS: dict[ApiStatus, frozenset[ApiStatus]] = {
    ApiStatus.PENDING: frozenset({ApiStatus.PROCESSING}),
    ApiStatus.PROCESSING: frozenset({ApiStatus.SUCCESS, ApiStatus.NO_RESULTS, ApiStatus.ERROR}),
}

_CAPABILITY_TRANSITIONS: dict[Capability, dict[ApiStatus, frozenset[ApiStatus]]] = {
    Capability.SPEECH: {ApiStatus.PROCESSING: frozenset({ApiStatus.NO_TRANSCRIPTION})},
    Capability.TOPICS: {ApiStatus.PENDING: frozenset({ApiStatus.SKIPPED_NO_TRANSCRIPT})},
}


def allowed_transitions(capability: Capability, current: ApiStatus) -> frozenset[ApiStatus]:
    """Statuses reachable from ``current`` for a capability."""
    extra = _CAPABILITY_TRANSITIONS.get(capability, {}).get(current, frozenset())
    return _TRANSITIONS.get(current, frozenset()) | extra


class StageTracker:
    """Status of one capability during one invocation."""

    def __init__(self, capability: Capability) -> None:
        self.capability = capability
        self.status = ApiStatus.PENDING
        self.error: str | None = None

    def begin(self) -> None:
        self._move(ApiStatus.PROCESSING)

    def complete(self, has_results: bool) -> ApiStatus:
        """Finish the stage without error.

        Args:
            has_results: Whether the stage produced at least one non-empty result.

        Returns:
            The new status.
        """
        self._move(ApiStatus.SUCCESS if has_results else ApiStatus.NO_RESULTS)
        return self.status

    def no_transcription(self) -> None:
        """Recognition returned results that joined to an empty transcript."""
        self._move(ApiStatus.NO_TRANSCRIPTION)

    def skip(self) -> None:
        """Never attempted because there was no transcript."""
        self._move(ApiStatus.SKIPPED_NO_TRANSCRIPT)

    def fail(self, error: BaseException) -> None:
        self._move(ApiStatus.ERROR)
        self.error = str(error) or type(error).__name__

    @property
    def failed(self) -> bool:
        return self.status is ApiStatus.ERROR

    def as_update(self) -> dict[str, Any]:
        """Record fields for this capability, keyed by model field name."""
        return {
            self.capability.status_field: self.status,
            self.capability.error_field: self.error,
        }

    def _move(self, target: ApiStatus) -> None:
        if target not in allowed_transitions(self.capability, self.status):
            raise InvalidTransitionError(
                f"{self.capability.value} status cannot go from "
                f"{self.status.value} to {target.value}"
            )
        self.status = target

    def __repr__(self) -> str:
        return f"StageTracker({self.capability.value}={self.status.value})"


class OverallTracker:
    """Overall processing status for one invocation."""

    def __init__(self) -> None:
        self.status = OverallStatus.IN_PROGRESS
        self.error: ProcessingError | None = None

    def complete(self) -> None:
        self._move(OverallStatus.COMPLETED)

    def fail(self, error: BaseException | None = None) -> None:
        """Mark the step failed.

        Args:
            error: The fatal error, if one escaped. Stage-local failures
                pass None and leave ``processingError`` alone.
        """
        self._move(OverallStatus.FAILED)
        if error is not None:
            self.error = ProcessingError(
                message=str(error) or type(error).__name__,
                kind=type(error).__name__,
            )

    def _move(self, target: OverallStatus) -> None:
        if self.status is not OverallStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"overall status cannot go from {self.status.value} to {target.value}"
            )
        self.status = target
