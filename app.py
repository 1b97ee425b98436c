"""
GitLab Activity Analyzer - Streamlit UI
Shows per-category scores and two independently filtered overlay graphs for a project export.
"""
import streamlit as st
import logging
from datetime import date, datetime, time, timedelta, timezone
import os

from activity_engine.config import get_settings

settings = get_settings()

# Create logs directory if it doesn't exist
os.makedirs(os.path.dirname(settings.log_file) or '.', exist_ok=True)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format=settings.log_format,
    handlers=[
        logging.FileHandler(settings.log_file),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Import application modules
from activity_engine.exceptions import ActivityEngineError
from activity_engine.models import DateRange, EventCategory, WeightingPolicy
from activity_engine.processors.activity_pipeline import analyze_project_activity, load_project_export
from activity_engine.processors.bucketizer import buckets_to_frame
from activity_engine.processors.panel_controller import PanelSelectionController

PANELS = ["Graph A", "Graph B"]

# Page configuration
st.set_page_config(
    page_title="GitLab Activity Analyzer",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded"
)

# One controller per browser session; panels live as long as the session
if "panel_controller" not in st.session_state:
    st.session_state.panel_controller = PanelSelectionController()
    for panel_id in PANELS:
        st.session_state.panel_controller.open_panel(panel_id)
controller = st.session_state.panel_controller

# =============================================================================
# SIDEBAR
# =============================================================================
st.sidebar.title("📈 GitLab Analyzer")
uploaded_file = st.sidebar.file_uploader("Project export (JSON)", type=['json'])

today = date.today()
start_day = st.sidebar.date_input("Start date", value=today - timedelta(days=30))
end_day = st.sidebar.date_input("End date", value=today)

st.sidebar.markdown("---")
st.sidebar.subheader("Score weights")
weights = WeightingPolicy(weights={
    EventCategory.COMMIT: st.sidebar.number_input(
        "Commit weight", min_value=0.0, value=settings.commit_weight, step=0.5),
    EventCategory.MERGE_REQUEST: st.sidebar.number_input(
        "Merge request weight", min_value=0.0, value=settings.merge_request_weight, step=0.5),
})
granularity = st.sidebar.selectbox("Bucket size", ["1D", "7D"], index=0)

if not uploaded_file:
    st.info("Upload a project export to start.")
    st.stop()

# =============================================================================
# ANALYSIS
# =============================================================================
try:
    project, commits, merge_requests = load_project_export(uploaded_file)
    date_range = DateRange(
        start=datetime.combine(start_day, time.min, tzinfo=timezone.utc),
        end=datetime.combine(end_day, time.max, tzinfo=timezone.utc),
    )
    report = analyze_project_activity(
        commits,
        merge_requests,
        project_id=str(project.get("id", "")),
        date_range=date_range,
        weights=weights,
        granularity=granularity,
        project_name=project.get("name_with_namespace") or project.get("name", ""),
        settings=settings
    )
except ActivityEngineError as e:
    logger.error(f"Analysis failed: {e}")
    st.error(f"❌ {e}")
    st.stop()

# Header
header_col, score_col = st.columns([7, 3])
with header_col:
    st.title(report.project_name or f"Project {report.project_id}")
    st.caption(
        f"- {report.event_counts[EventCategory.COMMIT]} Commits "
        f"- {report.event_counts[EventCategory.MERGE_REQUEST]} Merge Requests -"
    )
with score_col:
    for category in EventCategory:
        st.metric(f"{category.singular_label} Score", f"{report.score_for(category):g}")

if report.warnings.total:
    with st.expander(f"⚠️ {report.warnings.total} records skipped"):
        for message in report.warnings.messages:
            st.write(message)

# =============================================================================
# PANELS
# =============================================================================
for panel_id in PANELS:
    st.markdown("---")
    graph_col, toggle_col = st.columns([4, 1])
    with toggle_col:
        st.write(f"**{panel_id}**")
        for category in EventCategory:
            checked = st.checkbox(
                category.label,
                value=controller.is_enabled(panel_id, category),
                key=f"{panel_id}-{category.value}"
            )
            if checked != controller.is_enabled(panel_id, category):
                controller.toggle(panel_id, category)
    with graph_col:
        visible = controller.visible_series(panel_id, report.buckets)
        frame = buckets_to_frame(visible)
        if frame.columns.empty:
            st.write("No categories selected.")
        else:
            st.line_chart(frame)
