"""
Activity scoring for normalized events.
Score of a category = number of its events inside the range * its weight.
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Mapping, Union

from activity_engine.models import (
    CategoryScore, DateRange, EventCategory, EventRecord, WeightingPolicy
)

logger = logging.getLogger(__name__)


def as_policy(weights: Union[WeightingPolicy, Mapping, None]) -> WeightingPolicy:
    """Accept a WeightingPolicy, a plain category -> weight mapping, or None."""
    if weights is None:
        return WeightingPolicy()
    if isinstance(weights, WeightingPolicy):
        return weights
    return WeightingPolicy(weights={EventCategory.parse(k): v for k, v in weights.items()})


def count_in_range(events: Iterable[EventRecord], date_range: DateRange) -> Dict[EventCategory, int]:
    """
    Count events per category inside the closed range.

    Every known category is present in the result, zero when it has no events.
    """
    counts = Counter(event.category for event in events if date_range.contains(event.timestamp))
    return {category: counts.get(category, 0) for category in EventCategory}


def score_events(events: Iterable[EventRecord], date_range: DateRange,
                 weights: Union[WeightingPolicy, Mapping, None] = None) -> List[CategoryScore]:
    """
    Compute one score per known category.

    Events are grouped before anything is summed, so the result does not
    depend on input order.

    Args:
        events: Normalized events, in any order
        date_range: Inclusive range events must fall in
        weights: Weighting policy or mapping; missing categories weigh 1

    Returns:
        List[CategoryScore]: One score per category, in EventCategory order
    """
    policy = as_policy(weights)
    counts = count_in_range(events, date_range)

    scores = [
        CategoryScore(category=category, value=counts[category] * policy.weight_for(category))
        for category in EventCategory
    ]
    logger.debug(f"Scored {sum(counts.values())} events in {date_range}: {scores_by_category(scores)}")
    return scores


def scores_by_category(scores: Iterable[CategoryScore]) -> Dict[EventCategory, float]:
    return {score.category: score.value for score in scores}
