"""
Event normalization for raw GitLab commit and merge request payloads.
Turns both source lists into one time-sorted sequence of EventRecord.
"""
import logging
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Iterable, Optional, Set

import pandas as pd

from activity_engine.exceptions import MalformedRecord, UnknownCategory
from activity_engine.models import (
    EventCategory, EventRecord,
    NormalizationResult, NormalizationWarnings
)

logger = logging.getLogger(__name__)

# Fields tried in order when resolving the event time
TIMESTAMP_FIELDS = {
    EventCategory.COMMIT: ("created_at", "committed_date", "authored_date"),
    EventCategory.MERGE_REQUEST: ("created_at", "merged_at", "updated_at"),
}

ID_FIELDS = {
    EventCategory.COMMIT: ("id", "sha", "short_id"),
    EventCategory.MERGE_REQUEST: ("iid", "id"),
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a raw timestamp into a UTC datetime.

    Accepts ISO-8601 strings, datetime/date objects and epoch seconds.

    Returns:
        Optional[datetime]: Parsed time, or None when the value is unusable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, float) and not math.isfinite(value):
        return None

    try:
        if isinstance(value, (int, float)):
            parsed = pd.to_datetime(value, unit="s", utc=True, errors="coerce")
        elif isinstance(value, (str, datetime)):
            parsed = pd.to_datetime(value, utc=True, errors="coerce")
        elif isinstance(value, date):
            parsed = pd.to_datetime(datetime(value.year, value.month, value.day), utc=True)
        else:
            return None
    except (OverflowError, ValueError, pd.errors.OutOfBoundsDatetime):
        # Epoch values past the representable nanosecond range
        return None

    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _commit_ids(raw: Any) -> Set[str]:
    """All identifiers a commit payload (or a bare sha) can be referenced by."""
    if isinstance(raw, Mapping):
        return {str(raw[field]) for field in ID_FIELDS[EventCategory.COMMIT] if raw.get(field)}
    if isinstance(raw, str) and raw:
        return {raw}
    return set()


def merge_request_commit_ids(raw_merge_requests: Iterable[Any]) -> Set[str]:
    """
    Collect the commit identifiers listed under each merge request's `commits`.

    Args:
        raw_merge_requests: Raw merge request payloads

    Returns:
        Set[str]: Commit ids/shas that belong to some merge request
    """
    ids: Set[str] = set()
    for raw in raw_merge_requests:
        if not isinstance(raw, Mapping):
            continue
        for commit in raw.get("commits") or []:
            ids |= _commit_ids(commit)
    return ids


def normalize_record(raw: Any, default_category: EventCategory,
                     project_id: str, position: int) -> EventRecord:
    """
    Normalize one raw payload.

    Args:
        raw: Raw commit or merge request payload
        default_category: Category of the list the payload came from
        project_id: Owning project identifier
        position: Index of the payload within its source list

    Returns:
        EventRecord: Normalized event

    Raises:
        MalformedRecord: If the payload has no usable timestamp
        UnknownCategory: If the payload names a category outside EventCategory
    """
    where = f"{default_category.value} #{position}"
    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"{where}: expected a mapping, got {type(raw).__name__}")

    category = default_category
    if raw.get("category") is not None:
        try:
            category = EventCategory.parse(raw["category"])
        except UnknownCategory as e:
            raise UnknownCategory(f"{where}: {e}") from e

    timestamp = None
    for field in TIMESTAMP_FIELDS[category]:
        timestamp = parse_timestamp(raw.get(field))
        if timestamp is not None:
            break
    if timestamp is None:
        raise MalformedRecord(f"{where}: no usable timestamp")

    event_id = next(
        (str(raw[field]) for field in ID_FIELDS[category] if raw.get(field) is not None),
        f"{category.value}-{position}"
    )

    return EventRecord(
        id=event_id,
        category=category,
        timestamp=timestamp,
        project_id=str(project_id)
    )


def normalize_events(raw_commits: Optional[Iterable[Any]],
                     raw_merge_requests: Optional[Iterable[Any]],
                     project_id: str,
                     exclude_merge_request_commits: bool = False) -> NormalizationResult:
    """
    Normalize raw commit and merge request lists into one sorted event sequence.

    Records without a usable timestamp or with an unknown category are skipped
    and counted; they never fail the batch. Events are sorted by timestamp,
    then category, then original input order (commits before merge requests).

    Args:
        raw_commits: Raw commit payloads
        raw_merge_requests: Raw merge request payloads
        project_id: Owning project identifier
        exclude_merge_request_commits: Drop commits listed under a merge request

    Returns:
        NormalizationResult: Sorted events plus the warning summary
    """
    raw_commits = list(raw_commits or [])
    raw_merge_requests = list(raw_merge_requests or [])

    excluded_ids = merge_request_commit_ids(raw_merge_requests) if exclude_merge_request_commits else set()

    events = []
    messages = []
    malformed = 0
    unknown = 0
    excluded = 0

    sources = (
        (EventCategory.COMMIT, raw_commits),
        (EventCategory.MERGE_REQUEST, raw_merge_requests),
    )
    for default_category, records in sources:
        for position, raw in enumerate(records):
            if excluded_ids and default_category is EventCategory.COMMIT and _commit_ids(raw) & excluded_ids:
                excluded += 1
                continue
            try:
                events.append(normalize_record(raw, default_category, project_id, position))
            except MalformedRecord as e:
                malformed += 1
                messages.append(str(e))
                logger.warning(f"Skipping malformed record: {e}")
            except UnknownCategory as e:
                unknown += 1
                messages.append(str(e))
                logger.warning(f"Skipping record with unknown category: {e}")

    # sorted() is stable, so equal keys keep input order
    events = sorted(events, key=lambda event: (event.timestamp, event.category.rank))

    logger.info(
        f"Normalized {len(events)} events for project {project_id} "
        f"({malformed} malformed, {unknown} unknown category, {excluded} merge request commits excluded)"
    )

    return NormalizationResult(
        events=tuple(events),
        warnings=NormalizationWarnings(
            malformed_records=malformed,
            unknown_category_records=unknown,
            messages=messages
        ),
        excluded_merge_request_commits=excluded
    )
