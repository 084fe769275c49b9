from __future__ import annotations

from fastapi import Request

from unihelper.agents.discovery import UniversityDiscovery
from unihelper.agents.orchestrator import AnalysisOrchestrator
from unihelper.models.analysis import RunState
from unihelper.services.result_store import ResultStore, get_result_store


def get_store() -> ResultStore:
    return get_result_store()


def get_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator(store=get_result_store())


def get_discovery() -> UniversityDiscovery:
    return UniversityDiscovery(store=get_result_store())


def begin_run(request: Request, surface: str) -> RunState:
    """Mark ``surface`` busy on the app, raising ``RunInProgress`` if it already is."""
    states: dict[str, RunState] = request.app.state.run_states
    state = states.get(surface, RunState()).begin()
    states[surface] = state
    return state


def finish_run(request: Request, surface: str) -> None:
    states: dict[str, RunState] = request.app.state.run_states
    states[surface] = states.get(surface, RunState()).finish()
