"""
End-to-end activity pipeline for one project.
Normalizes raw GitLab payloads, then scores and bucketizes them.
"""
import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from activity_engine.config import Settings, get_settings
from activity_engine.exceptions import ExportFormatError
from activity_engine.models import DateRange, ProjectActivityReport, WeightingPolicy
from activity_engine.processors.bucketizer import bucketize_events, parse_granularity
from activity_engine.processors.normalizer import normalize_events
from activity_engine.processors.scorer import count_in_range, score_events

logger = logging.getLogger(__name__)


def analyze_project_activity(
    raw_commits: Optional[List[Any]],
    raw_merge_requests: Optional[List[Any]],
    project_id: str,
    date_range: DateRange,
    weights: Union[WeightingPolicy, Mapping, None] = None,
    granularity: Union[str, timedelta, None] = None,
    project_name: str = "",
    settings: Optional[Settings] = None,
) -> ProjectActivityReport:
    """
    Main processing pipeline for a single project.

    Args:
        raw_commits: Raw commit payloads from the fetch layer
        raw_merge_requests: Raw merge request payloads from the fetch layer
        project_id: Project identifier
        date_range: Range shared by commits and merge requests
        weights: Weighting policy (default: settings weights)
        granularity: Bucket width (default: settings granularity)
        project_name: Display name for the report header
        settings: Application settings (default: get_settings())

    Returns:
        ProjectActivityReport: Scores, buckets, counts and warnings

    Raises:
        InvalidRange: If the date range ends before it starts
        InvalidGranularity: If the granularity is not a positive time span
    """
    settings = settings or get_settings()
    if weights is None:
        weights = settings.default_weights()
    step = parse_granularity(granularity if granularity is not None else settings.default_granularity)

    logger.info(f"Analyzing project {project_id} over {date_range}")

    normalized = normalize_events(
        raw_commits,
        raw_merge_requests,
        project_id,
        exclude_merge_request_commits=settings.exclude_merge_request_commits
    )

    scores = score_events(normalized.events, date_range, weights)
    buckets = bucketize_events(normalized.events, date_range, step)
    event_counts = count_in_range(normalized.events, date_range)

    if normalized.warnings.total:
        logger.warning(
            f"Project {project_id}: skipped {normalized.warnings.total} records "
            f"({normalized.warnings.malformed_records} malformed, "
            f"{normalized.warnings.unknown_category_records} unknown category)"
        )
    logger.info(f"Successfully analyzed project {project_id}: "
                f"{sum(event_counts.values())} events in range, {len(buckets)} buckets")

    return ProjectActivityReport(
        project_id=str(project_id),
        project_name=project_name,
        date_range=date_range,
        granularity=step,
        scores=scores,
        buckets=buckets,
        event_counts=event_counts,
        warnings=normalized.warnings
    )


def load_project_export(source: Union[str, Path, Any]) -> Tuple[Dict[str, Any], List[Any], List[Any]]:
    """
    Read a project export written by the fetch layer.

    The export is a JSON object with `project`, `commits` and `merge_requests`
    keys. `source` may be a path or an open file-like object.

    Returns:
        Tuple: (project metadata, raw commits, raw merge requests)

    Raises:
        ExportFormatError: If the file is not valid JSON or has the wrong shape
    """
    try:
        if isinstance(source, (str, Path)):
            logger.info(f"Reading project export: {source}")
            with open(source, encoding="utf-8") as f:
                data = json.load(f)
        else:
            data = json.load(source)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ExportFormatError(f"Export is not valid JSON: {e}") from e
    except OSError as e:
        raise ExportFormatError(f"Cannot read export {source}: {e}") from e

    if not isinstance(data, dict):
        raise ExportFormatError("Export must be a JSON object")

    project = data.get("project") or {}
    commits = data.get("commits") or []
    merge_requests = data.get("merge_requests") or []
    if not isinstance(project, dict):
        raise ExportFormatError("'project' must be an object")
    if not isinstance(commits, list) or not isinstance(merge_requests, list):
        raise ExportFormatError("'commits' and 'merge_requests' must be lists")

    logger.info(f"Loaded export with {len(commits)} commits and {len(merge_requests)} merge requests")
    return project, commits, merge_requests
