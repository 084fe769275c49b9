from __future__ import annotations

import pytest

from unihelper.errors import RunInProgress
from unihelper.models.analysis import (
    APP_TIPS_DISABLED,
    SNIPPET_LABELS,
    AnalysisResult,
    Category,
    RunState,
    SearchCandidate,
    StageError,
    UserPreferences,
)
from unihelper.models.events import EventType
from unihelper.services import streaming


class TestRunState:
    def test_begin_and_finish(self):
        idle = RunState()
        running = idle.begin()

        assert not idle.active
        assert running.active
        assert running.run_id
        assert running.started_at is not None
        assert running.finish() == RunState()

    def test_begin_while_active_raises(self):
        running = RunState().begin()

        with pytest.raises(RunInProgress):
            running.begin()


class TestUserPreferences:
    def test_defaults(self):
        prefs = UserPreferences.from_mapping({})

        assert prefs.enabled_categories() == [Category.SCHOLARSHIPS, Category.REVIEWS]
        assert prefs.trait_values() == {"sociability": 5, "nature": 5, "study": 5}

    def test_from_mapping_coerces_and_clamps(self):
        prefs = UserPreferences.from_mapping(
            {
                "scholarships": "false",
                "reviews": False,
                "location": "true",
                "appTips": 1,
                "sociable": "8",
                "nature": 42,
                "study": "not a number",
                "course": "  Physics ",
                "locationPref": "",
            }
        )

        assert prefs.enabled_categories() == [Category.LOCATION, Category.APP_TIPS]
        assert (prefs.sociability, prefs.nature_affinity, prefs.study_focus) == (8, 10, 5)
        assert prefs.course == "Physics"
        assert prefs.location_query is None

    def test_out_of_range_trait_is_rejected(self):
        with pytest.raises(ValueError):
            UserPreferences(sociability=11)


def test_category_metadata():
    assert Category.APP_TIPS.label == "APPLICATION TIPS"
    assert Category.APP_TIPS.request_flag == "appTips"
    assert Category.REVIEWS.links_key == "reviewLinks"
    assert SNIPPET_LABELS == {c.label for c in Category}


def test_search_candidate_wire_shape():
    candidate = SearchCandidate.from_item({"title": "Funding", "url": "https://www.example.ac.uk/f"})

    assert candidate.to_dict() == {
        "title": "Funding",
        "link": "https://www.example.ac.uk/f",
        "displayLink": "example.ac.uk",
    }


def test_default_result_payload():
    result = AnalysisResult(page_summary="Summary")
    result.errors.append(StageError(stage="reviews_search", message="down"))

    payload = result.to_payload()

    assert payload["pageSummary"] == "Summary"
    assert payload["locationLinks"] == []
    assert payload["appTipsSummary"] == ""
    assert payload["generatedAppTips"] == APP_TIPS_DISABLED
    assert payload["errors"] == [{"stage": "reviews_search", "message": "down"}]
    assert payload["protocol"] == "links"


def test_streaming_events_format():
    event = streaming.category_completed("reviews", success=False)

    assert event.event == EventType.CATEGORY_COMPLETED
    assert event.format().startswith("event: category_completed\ndata: ")
    assert '"success": false' in event.format()
