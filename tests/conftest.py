"""
Pytest configuration and shared fixtures.
"""
import pytest
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from activity_engine.config import Settings
from activity_engine.models import DateRange, EventCategory, EventRecord
from activity_engine.processors.panel_controller import PanelSelectionController
from tests.fixtures.mock_data import COMMITS_SEPTEMBER, MERGE_REQUESTS_SEPTEMBER, utc


# ==========================================================================
# CONFIGURATION FIXTURES
# ==========================================================================

@pytest.fixture
def test_settings():
    """Return test settings."""
    return Settings(
        default_granularity="1D",
        commit_weight=1.0,
        merge_request_weight=1.0,
        exclude_merge_request_commits=False,
        log_level="DEBUG"
    )


# ==========================================================================
# RAW PAYLOAD FIXTURES
# ==========================================================================

@pytest.fixture
def raw_commits():
    """Return three commits: two on 2020-09-05, one on 2020-10-01."""
    return [dict(commit) for commit in COMMITS_SEPTEMBER]


@pytest.fixture
def raw_merge_requests():
    """Return one merge request on 2020-09-10."""
    return [dict(mr) for mr in MERGE_REQUESTS_SEPTEMBER]


# ==========================================================================
# MODEL FIXTURES
# ==========================================================================

@pytest.fixture
def september():
    """Return the 2020-09-01 .. 2020-09-30 range."""
    return DateRange(start=utc(2020, 9, 1), end=utc(2020, 9, 30))


@pytest.fixture
def single_day():
    """Return the zero-length range on 2020-09-05."""
    return DateRange(start=utc(2020, 9, 5), end=utc(2020, 9, 5))


@pytest.fixture
def sample_events():
    """Return normalized events matching raw_commits + raw_merge_requests."""
    return [
        EventRecord(id="a1b2c3d4e5", category=EventCategory.COMMIT, timestamp=utc(2020, 9, 5), project_id="42"),
        EventRecord(id="b2c3d4e5f6", category=EventCategory.COMMIT, timestamp=utc(2020, 9, 5), project_id="42"),
        EventRecord(id="12", category=EventCategory.MERGE_REQUEST, timestamp=utc(2020, 9, 10), project_id="42"),
        EventRecord(id="c3d4e5f6a7", category=EventCategory.COMMIT, timestamp=utc(2020, 10, 1), project_id="42"),
    ]


@pytest.fixture
def panel_controller():
    """Return a controller with panels A and B mounted."""
    controller = PanelSelectionController()
    controller.open_panel("A")
    controller.open_panel("B")
    return controller
