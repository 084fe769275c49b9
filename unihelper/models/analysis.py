from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping
from uuid import uuid4

from unihelper.errors import RunInProgress
from unihelper.tools import web_utils

TRAIT_MIN = 0
TRAIT_MAX = 10
TRAIT_DEFAULT = 5

APP_TIPS_DISABLED = "[Application tip generation disabled in preferences.]"


class Category(str, Enum):
    SCHOLARSHIPS = "scholarships"
    REVIEWS = "reviews"
    LOCATION = "location"
    APP_TIPS = "app_tips"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def links_key(self) -> str:
        return _CATEGORY_LINK_KEYS[self]

    @property
    def summary_key(self) -> str:
        return _CATEGORY_SUMMARY_KEYS[self]

    @property
    def topic(self) -> str:
        return _CATEGORY_TOPICS[self]

    @property
    def request_flag(self) -> str:
        """Query parameter name used by the external-data endpoint."""
        return "appTips" if self is Category.APP_TIPS else self.value


_CATEGORY_LABELS = {
    Category.SCHOLARSHIPS: "SCHOLARSHIPS",
    Category.REVIEWS: "STUDENT REVIEWS",
    Category.LOCATION: "LOCATION INFO",
    Category.APP_TIPS: "APPLICATION TIPS",
}
_CATEGORY_LINK_KEYS = {
    Category.SCHOLARSHIPS: "scholarshipLinks",
    Category.REVIEWS: "reviewLinks",
    Category.LOCATION: "locationLinks",
    Category.APP_TIPS: "appTipsLinks",
}
_CATEGORY_SUMMARY_KEYS = {
    Category.SCHOLARSHIPS: "scholarshipSummary",
    Category.REVIEWS: "reviewSummary",
    Category.LOCATION: "locationSummary",
    Category.APP_TIPS: "appTipsSummary",
}
_CATEGORY_TOPICS = {
    Category.SCHOLARSHIPS: "scholarships and financial aid",
    Category.REVIEWS: "student reviews and student life",
    Category.LOCATION: "the city, area and campus location",
    Category.APP_TIPS: "application tips and admission requirements",
}

SNIPPET_LABELS = frozenset(_CATEGORY_LABELS.values())


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _coerce_trait(value: Any) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return TRAIT_DEFAULT
    return max(TRAIT_MIN, min(TRAIT_MAX, number))


@dataclass(frozen=True)
class UserPreferences:
    """Snapshot of the display layer's preferences for one run."""

    want_scholarships: bool = True
    want_reviews: bool = True
    want_location: bool = False
    want_app_tips: bool = False
    sociability: int = TRAIT_DEFAULT
    nature_affinity: int = TRAIT_DEFAULT
    study_focus: int = TRAIT_DEFAULT
    course: str | None = None
    location_query: str | None = None

    def __post_init__(self) -> None:
        for name in ("sociability", "nature_affinity", "study_focus"):
            value = getattr(self, name)
            if not TRAIT_MIN <= value <= TRAIT_MAX:
                raise ValueError(f"{name} must be between {TRAIT_MIN} and {TRAIT_MAX}, got {value}")

    @classmethod
    def from_mapping(cls, prefs: Mapping[str, Any] | None) -> "UserPreferences":
        """Build from the stored preference shape, clamping traits into range."""
        prefs = prefs or {}
        course = str(prefs.get("course") or "").strip() or None
        location_query = str(prefs.get("locationPref") or "").strip() or None
        return cls(
            want_scholarships=_coerce_bool(prefs.get("scholarships"), True),
            want_reviews=_coerce_bool(prefs.get("reviews"), True),
            want_location=_coerce_bool(prefs.get("location"), False),
            want_app_tips=_coerce_bool(prefs.get("appTips"), False),
            sociability=_coerce_trait(prefs.get("sociable", TRAIT_DEFAULT)),
            nature_affinity=_coerce_trait(prefs.get("nature", TRAIT_DEFAULT)),
            study_focus=_coerce_trait(prefs.get("study", TRAIT_DEFAULT)),
            course=course,
            location_query=location_query,
        )

    def wants(self, category: Category) -> bool:
        return {
            Category.SCHOLARSHIPS: self.want_scholarships,
            Category.REVIEWS: self.want_reviews,
            Category.LOCATION: self.want_location,
            Category.APP_TIPS: self.want_app_tips,
        }[category]

    def enabled_categories(self) -> list[Category]:
        return [category for category in Category if self.wants(category)]

    def trait_values(self) -> dict[str, int]:
        return {
            "sociability": self.sociability,
            "nature": self.nature_affinity,
            "study": self.study_focus,
        }


@dataclass(frozen=True)
class PageContext:
    text: str
    source_url: str

    @property
    def entity_name(self) -> str:
        return web_utils.derive_entity_name(self.source_url)


@dataclass(frozen=True)
class SearchCandidate:
    title: str
    url: str
    display_site: str = ""

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "SearchCandidate":
        """Build from a provider item (``link``/``url`` and ``displayLink``)."""
        url = str(item.get("link") or item.get("url") or "")
        display_site = str(item.get("displayLink") or item.get("display_site") or "")
        return cls(
            title=str(item.get("title") or ""),
            url=url,
            display_site=display_site or web_utils.domain_of(url) or "",
        )

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "link": self.url, "displayLink": self.display_site}


@dataclass(frozen=True)
class StageError:
    stage: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "message": self.message}


def _empty_summaries() -> dict[Category, str]:
    return {category: "" for category in Category}


def _empty_links() -> dict[Category, list[SearchCandidate]]:
    return {category: [] for category in Category}


@dataclass
class AnalysisResult:
    """Aggregate record of one analysis run."""

    page_summary: str | None = None
    category_summaries: dict[Category, str] = field(default_factory=_empty_summaries)
    links: dict[Category, list[SearchCandidate]] = field(default_factory=_empty_links)
    generated_app_tips: str = APP_TIPS_DISABLED
    errors: list[StageError] = field(default_factory=list)
    protocol: str = "links"

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"pageSummary": self.page_summary}
        for category in Category:
            payload[category.links_key] = [c.to_dict() for c in self.links.get(category, [])]
        for category in Category:
            payload[category.summary_key] = self.category_summaries.get(category, "")
        payload["generatedAppTips"] = self.generated_app_tips
        payload["errors"] = [e.to_dict() for e in self.errors]
        payload["protocol"] = self.protocol
        return payload


@dataclass(frozen=True)
class TopLevelFailure:
    message: str
    stage: str = "analysis"
    key: str = "analysisError"

    def to_payload(self) -> dict[str, Any]:
        return {self.key: self.message}


@dataclass(frozen=True)
class DiscoveryResult:
    universities: list[SearchCandidate] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"foundUniversities": [u.to_dict() for u in self.universities]}


@dataclass(frozen=True)
class RunState:
    """Whether a run is in flight for one triggering surface."""

    active: bool = False
    run_id: str | None = None
    started_at: datetime | None = None

    def begin(self) -> "RunState":
        if self.active:
            raise RunInProgress(f"Run {self.run_id} is still in progress")
        return replace(
            self,
            active=True,
            run_id=uuid4().hex,
            started_at=datetime.now(timezone.utc),
        )

    def finish(self) -> "RunState":
        return RunState()
