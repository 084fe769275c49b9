from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# --- Requests ---


class AnalysisRequest(BaseModel):
    url: str
    preferences: dict[str, Any] = Field(default_factory=dict)


class DiscoveryRequest(BaseModel):
    course: str = ""
    location: str = ""
    # Stored preferences; their course and locationPref fill blank fields
    preferences: dict[str, Any] | None = None


# --- Responses ---


class LinkItem(BaseModel):
    title: str = ""
    link: str
    displayLink: str = ""


class ExternalDataResponse(BaseModel):
    scholarshipLinks: list[LinkItem] = Field(default_factory=list)
    reviewLinks: list[LinkItem] = Field(default_factory=list)
    locationLinks: list[LinkItem] = Field(default_factory=list)
    appTipsLinks: list[LinkItem] = Field(default_factory=list)
    # Category value to error message for searches that failed
    failures: dict[str, str] = Field(default_factory=dict)


class UniversitiesResponse(BaseModel):
    universities: list[LinkItem]
