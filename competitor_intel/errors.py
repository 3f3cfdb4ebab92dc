"""Exception hierarchy for the analysis pipeline and its collaborators."""

from __future__ import annotations


class CompetitorIntelError(Exception):
    """Base class for all package errors."""


class FetchError(CompetitorIntelError):
    """A page could not be fetched or had no extractable content."""


class SearchError(CompetitorIntelError):
    """A search provider request failed."""

    def __init__(self, message: str, payment_required: bool = False):
        super().__init__(message)
        self.payment_required = payment_required


class ScrapeError(CompetitorIntelError):
    """The target URL was unreachable or returned empty content."""


class ExtractionError(CompetitorIntelError):
    """The company profile could not be extracted."""


class RankingError(CompetitorIntelError):
    """The competitor ranking step produced no usable output."""


class AnalysisError(CompetitorIntelError):
    """The comparative analysis step produced no usable output."""


class MalformedResponseError(CompetitorIntelError):
    """An LLM response was not the JSON shape a stage asked for."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"[{stage}] {message}")
        self.stage = stage


class PersistenceError(CompetitorIntelError):
    """The report store could not be reached or rejected the write."""


class NotifyError(CompetitorIntelError):
    """The report email could not be sent. Never fatal to a run."""


class PipelineError(CompetitorIntelError):
    """Top-level failure of a run, tagged with the stage that failed."""

    def __init__(self, stage: str, cause: BaseException | str):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage}: {cause}")


class PipelineCancelled(PipelineError):
    """The run was cancelled at a stage boundary; nothing was persisted."""

    def __init__(self, stage: str):
        super().__init__(stage, "run cancelled")
