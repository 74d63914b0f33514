"""Reconciliation stage: merge stage results into the media record.

This stage handles:
- Restricting each path to the fields of its own capability
- Deciding whether the upload's source info may be refreshed
- Building the field-level merge payload written to the store

Writes are merges, never replacements, and only carry the fields this step
owns. The read that produced ``existing`` and the later write are not
transactional: two invocations for the same asset can interleave, and the
later merge wins on the fields both wrote.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from mediaflow.models.schema import (
    ApiStatus,
    MediaKind,
    MediaRecord,
    OverallStatus,
    SourceInfo,
)
from mediaflow.stages.status import PRIMARY_CAPABILITY, OverallTracker

# Record fields each path is allowed to write
CAPABILITY_FIELDS: dict[MediaKind, frozenset[str]] = {
    MediaKind.IMAGE: frozenset({"tags", "object_tags", "vision_status", "vision_error"}),
    MediaKind.VIDEO: frozenset({"tags", "object_tags", "video_status", "video_error"}),
    MediaKind.AUDIO: frozenset(
        {
            "transcription",
            "topics",
            "speech_status",
            "speech_error",
            "topics_status",
            "topics_error",
        }
    ),
}

# Written by every step regardless of path
STEP_FIELDS = frozenset({"overall_status", "processed_at"})

LABEL_FIELDS = ("tags", "object_tags")


@dataclass
class Reconciliation:
    """Outcome of merging one step's results into a record."""

    record: MediaRecord
    changes: dict[str, Any] = field(default_factory=dict)
    created: bool = False
    source_refreshed: bool = False


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def unique_labels(values: Iterable[str | None]) -> list[str]:
    """Drop empty labels and duplicates, keeping first-seen order."""
    seen: set[str] = set()
    labels: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        labels.append(value)
    return labels


def reconcile(
    asset_id: str,
    existing: MediaRecord | None,
    update: dict[str, Any],
    *,
    kind: MediaKind,
    source: SourceInfo,
    direct_upload: bool,
    overall_status: OverallStatus,
    processed_at: str | None = None,
) -> Reconciliation:
    """Merge one step's results into the existing record.

    Args:
        asset_id: Document ID of the record.
        existing: Record read before the step ran, or None if absent.
        update: New values for the step's capability fields, keyed by
            MediaRecord field name.
        kind: Processing path that produced the update.
        source: Source info of the current event.
        direct_upload: False when the event came from the derived-audio bucket.
        overall_status: Outcome of the step.
        processed_at: Timestamp to stamp; defaults to now.

    Returns:
        Reconciliation with the merged record and the merge payload.

    Raises:
        ValueError: If the update touches fields outside the path's capability.
    """
    unexpected = set(update) - CAPABILITY_FIELDS[kind]
    if unexpected:
        raise ValueError(
            f"{kind.value} step cannot write {', '.join(sorted(unexpected))}"
        )

    values: dict[str, Any] = dict(update)
    for name in LABEL_FIELDS:
        if name in values:
            values[name] = unique_labels(values[name])
    values["overall_status"] = overall_status
    values["processed_at"] = processed_at or utc_timestamp()

    # Derived audio must keep the parent video's source info
    refresh_source = kind is not MediaKind.AUDIO or direct_upload
    if refresh_source:
        values["source"] = source

    created = existing is None
    base = existing if existing is not None else MediaRecord(asset_id=asset_id)
    record = base.model_copy(update=values)

    if created and refresh_source:
        changes = record.to_document()
    else:
        changes = record.document_fields(set(update) | STEP_FIELDS)
        if refresh_source:
            changes.update(source.model_dump(mode="json", by_alias=True))

    return Reconciliation(
        record=record,
        changes=changes,
        created=created,
        source_refreshed=refresh_source,
    )


def in_progress_changes(kind: MediaKind, processed_at: str | None = None) -> dict[str, Any]:
    """Merge payload marking a step as started.

    Only status fields are written, so this is safe for derived audio.
    """
    capability = PRIMARY_CAPABILITY[kind]
    return {
        MediaRecord.document_key(capability.status_field): ApiStatus.PROCESSING.value,
        MediaRecord.document_key("overall_status"): OverallStatus.IN_PROGRESS.value,
        MediaRecord.document_key("processed_at"): processed_at or utc_timestamp(),
    }


def failure_changes(
    overall: OverallTracker,
    kind: MediaKind | None = None,
    processed_at: str | None = None,
) -> dict[str, Any]:
    """Merge payload recording a fatal error.

    Args:
        overall: Failed overall tracker, carrying the fatal error if any.
        kind: Path whose primary capability was left at ``processing`` by the
            aborted step. That capability is moved to ``error``. None leaves
            capability fields alone.
        processed_at: Timestamp to stamp; defaults to now.
    """
    changes: dict[str, Any] = {
        MediaRecord.document_key("overall_status"): overall.status.value,
        MediaRecord.document_key("processed_at"): processed_at or utc_timestamp(),
    }
    if overall.error is not None:
        changes[MediaRecord.document_key("processing_error")] = overall.error.model_dump()
    if kind is not None:
        capability = PRIMARY_CAPABILITY[kind]
        changes[MediaRecord.document_key(capability.status_field)] = ApiStatus.ERROR.value
        changes[MediaRecord.document_key(capability.error_field)] = (
            overall.error.message if overall.error is not None else None
        )
    return changes
