"""
Time bucketing for normalized events.
Produces a dense, gap-free per-category count series over a date range.
"""
import logging
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence, Union

import pandas as pd

from activity_engine.exceptions import InvalidGranularity, InvalidRange
from activity_engine.models import DateRange, EventCategory, EventRecord, TimeBucket

logger = logging.getLogger(__name__)

DEFAULT_GRANULARITY = timedelta(days=1)


def parse_granularity(granularity: Union[str, timedelta, pd.Timedelta, None]) -> timedelta:
    """
    Resolve a bucket granularity.

    Args:
        granularity: timedelta, pandas timedelta string ("1D", "7D", "12h") or None

    Returns:
        timedelta: Positive bucket width (one day when None)

    Raises:
        InvalidGranularity: If the value is unparseable or not positive
    """
    if granularity is None:
        return DEFAULT_GRANULARITY
    try:
        step = pd.Timedelta(granularity)
    except (TypeError, ValueError) as e:
        raise InvalidGranularity(f"Cannot parse bucket granularity {granularity!r}: {e}") from e
    if pd.isna(step) or step <= pd.Timedelta(0):
        raise InvalidGranularity(f"Bucket granularity must be positive, got {granularity!r}")
    return step.to_pytimedelta()


def bucket_starts(date_range: DateRange, step: timedelta) -> pd.DatetimeIndex:
    """Bucket start instants from range start while start <= range end."""
    return pd.date_range(start=date_range.start, end=date_range.end, freq=step)


def bucketize_events(events: Iterable[EventRecord], date_range: DateRange,
                     granularity: Union[str, timedelta, None] = None) -> List[TimeBucket]:
    """
    Partition events into contiguous half-open buckets spanning the range.

    Boundaries depend only on the range and granularity, so empty buckets are
    present with zero counts for every category. The first bucket starts at
    date_range.start; the last one is the bucket containing date_range.end.
    Events outside the range are not counted, even inside the last bucket.

    Args:
        events: Normalized events, in any order
        date_range: Range to cover
        granularity: Bucket width (default one day)

    Returns:
        List[TimeBucket]: Ordered buckets

    Raises:
        InvalidRange: If the range ends before it starts
        InvalidGranularity: If the granularity is not a positive time span
    """
    # Ranges built with model_construct skip validation
    if date_range.end < date_range.start:
        raise InvalidRange(date_range.start, date_range.end)

    step = parse_granularity(granularity)
    starts = bucket_starts(date_range, step)
    ends = starts + step

    frame = events_frame(events)

    counts = pd.DataFrame(0, index=range(len(starts)), columns=[c.value for c in EventCategory])
    if not frame.empty:
        # Index of the last bucket whose start <= timestamp
        frame["bucket"] = starts.searchsorted(frame["timestamp"], side="right") - 1
        inside = (frame["timestamp"] >= starts[0]) & (frame["timestamp"] <= date_range.end)
        grouped = frame[inside].groupby(["bucket", "category"]).size()
        for (bucket, category), size in grouped.items():
            counts.at[bucket, category] = size

    buckets = [
        TimeBucket(
            bucket_start=start.to_pydatetime(),
            bucket_end=end.to_pydatetime(),
            counts={category: int(counts.at[i, category.value]) for category in EventCategory}
        )
        for i, (start, end) in enumerate(zip(starts, ends))
    ]
    logger.debug(f"Bucketized events into {len(buckets)} buckets of {step} over {date_range}")
    return buckets


def events_frame(events: Iterable[EventRecord]) -> pd.DataFrame:
    """One row per event with UTC timestamp and category value columns."""
    events = list(events)
    return pd.DataFrame(
        {
            "timestamp": pd.to_datetime([event.timestamp for event in events], utc=True),
            "category": [event.category.value for event in events],
        }
    )


def buckets_to_frame(buckets: Sequence[TimeBucket],
                     categories: Optional[Iterable[EventCategory]] = None) -> pd.DataFrame:
    """
    Convert buckets into a DataFrame for charting.

    Args:
        buckets: Buckets from bucketize_events or visible_series
        categories: Columns to include (default: every category present in any bucket)

    Returns:
        pd.DataFrame: Indexed by bucket_start, one integer column per category label
    """
    if categories is None:
        present = {category for bucket in buckets for category in bucket.counts}
        categories = [category for category in EventCategory if category in present]
    categories = list(categories)

    frame = pd.DataFrame(
        [
            {category.label: bucket.counts.get(category, 0) for category in categories}
            for bucket in buckets
        ],
        index=pd.DatetimeIndex([bucket.bucket_start for bucket in buckets], name="bucket_start"),
        columns=[category.label for category in categories],
    )
    return frame.astype(int)
