"""Failure taxonomy for analysis and discovery runs."""
from __future__ import annotations


class UniHelperError(Exception):
    """Base class for modeled failures."""


class CapabilityUnavailable(UniHelperError):
    """The generative-text backend cannot be used; the run cannot start."""


class RemoteFetchFailure(UniHelperError):
    """A search, page fetch or generation call failed.

    Recorded against the category or snippet it belongs to and replaced by an
    empty value or placeholder.
    """


class MalformedResponse(RemoteFetchFailure):
    """A provider answered with data that does not match the expected envelope."""


class UnexpectedFailure(UniHelperError):
    """Anything uncaught escaping the pipeline."""


class RunInProgress(UniHelperError):
    """A run was requested while another one is still active."""
