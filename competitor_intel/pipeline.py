"""Async analysis pipeline: one company URL in, one competitive report out.

Stages run in strict order; competitor search and competitor deep-scrapes
fan out concurrently and join before the next stage. Progress goes to a
caller-supplied sink as ProgressEvents.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from typing import Any, TypeVar

from competitor_intel import events
from competitor_intel.analysis.extraction import (
    parse_analysis,
    parse_candidates,
    parse_company_profile,
)
from competitor_intel.analysis.llm_client import LLMClient
from competitor_intel.analysis.prompts import (
    ANALYSIS_SYSTEM,
    build_analysis_prompt,
    build_extraction_prompt,
    build_ranking_prompt,
)
from competitor_intel.analysis.scoring import fit_to_budget, truncate
from competitor_intel.config import Config
from competitor_intel.db.store import ReportStore
from competitor_intel.errors import (
    AnalysisError,
    CompetitorIntelError,
    ExtractionError,
    MalformedResponseError,
    NotifyError,
    PersistenceError,
    PipelineCancelled,
    PipelineError,
    RankingError,
    ScrapeError,
)
from competitor_intel.events import EventChannel, ProgressSink, deliver, event
from competitor_intel.models import (
    AnalysisResult,
    CompanyProfile,
    CompetitorCandidate,
    CompetitorRawData,
    PipelineOptions,
    PipelineRun,
    ProgressEvent,
    Report,
    SearchResult,
)
from competitor_intel.notify.report_email import send_report
from competitor_intel.notify.resend_client import ResendNotifier
from competitor_intel.scrape.extractor import ContentFetcher
from competitor_intel.scrape.pdf_parser import PdfParser, find_pdf_links
from competitor_intel.search.searcher import WebSearcher
from competitor_intel.search.strategy import generate_queries
from competitor_intel.search.url_ranker import filter_candidates, reconcile_analyses

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sub-pages fetched for every competitor, relative to its homepage
SUBPAGES = ("", "/pricing", "/about", "/careers")


class AnalysisPipeline:
    """Competitive analysis orchestrator.

    All collaborators are injected so tests can substitute fakes:
      fetcher.fetch(url) -> str
      searcher.search(query, limit) -> list[SearchResult]
      pdf_parser.parse_pdf(url) -> str | None
      llm.complete(prompt, system=None) -> str
      store.save / mark_sent / get / list / delete_all
      notifier.send(recipient, subject, html_body, attachments)
    """

    def __init__(
        self,
        config: Config,
        *,
        fetcher: Any,
        searcher: Any,
        pdf_parser: Any,
        llm: Any,
        store: Any | None = None,
        notifier: Any | None = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.searcher = searcher
        self.pdf_parser = pdf_parser
        self.llm = llm
        self.store = store
        self.notifier = notifier

    @classmethod
    def from_config(cls, config: Config) -> AnalysisPipeline:
        """Wire the production collaborators. Call ``aclose()`` when done."""
        notifier = None
        if config.resend_api_key:
            notifier = ResendNotifier(config.resend_api_key, config.report_from_email)
        return cls(
            config,
            fetcher=ContentFetcher(config),
            searcher=WebSearcher(config),
            pdf_parser=PdfParser(timeout=config.pdf_timeout),
            llm=LLMClient(config),
            store=ReportStore(config.reports_db_path),
            notifier=notifier,
        )

    async def aclose(self) -> None:
        if hasattr(self.llm, "aclose"):
            await self.llm.aclose()
        if self.store is not None and hasattr(self.store, "close"):
            self.store.close()

    def default_options(self) -> PipelineOptions:
        return PipelineOptions(
            max_competitors=self.config.max_competitors,
            stage_timeout=self.config.stage_timeout,
            pdf_timeout=self.config.pdf_timeout,
        )

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def run(
        self,
        input_url: str,
        sink: ProgressSink | None = None,
        options: PipelineOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineRun:
        """Run the full analysis for one URL.

        Raises PipelineError (tagged with the failing stage) after emitting a
        terminal ``error`` event. A failed email is reported in
        ``PipelineRun.warnings`` and as a ``warning`` event, never raised.
        """
        options = options or self.default_options()
        logger.info("Starting analysis for %s", input_url)

        try:
            result = await self._execute(input_url, sink, options, cancel_event)
        except PipelineError as e:
            logger.error("Analysis failed at %s: %s", e.stage, e.cause)
            await deliver(sink, event(events.ERROR, str(e.cause), {"stage": e.stage}))
            raise
        except asyncio.CancelledError:
            logger.warning("Analysis for %s cancelled", input_url)
            await deliver(sink, event(events.ERROR, "run cancelled", {"stage": "cancelled"}))
            raise

        await self._notify(result, sink, options)
        return result

    async def stream(
        self,
        input_url: str,
        options: PipelineOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Run the pipeline in a task and yield its events in order.

        Closing the iterator early cancels the run; nothing partial is
        persisted. A PipelineError is re-raised after its error event.
        """
        channel = EventChannel()

        async def run_and_close() -> PipelineRun:
            try:
                return await self.run(input_url, channel, options, cancel_event)
            finally:
                channel.close()

        task = asyncio.create_task(run_and_close())
        try:
            async for ev in channel:
                yield ev
            await task
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, PipelineError):
                    pass
            elif not task.cancelled():
                # the consumer stopped after the run failed
                task.exception()

    # ------------------------------------------------------------------
    # Stage sequencing
    # ------------------------------------------------------------------

    async def _execute(
        self,
        input_url: str,
        sink: ProgressSink | None,
        options: PipelineOptions,
        cancel_event: asyncio.Event | None,
    ) -> PipelineRun:
        stage = events.SCRAPING

        async def begin(next_stage: str, detail: str) -> None:
            nonlocal stage
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelled(next_stage)
            stage = next_stage
            logger.info("[%s] %s", next_stage, detail)
            await deliver(sink, event(next_stage, detail))

        try:
            # 1. Scrape target
            await begin(events.SCRAPING, f"Scraping {input_url}...")
            content = await self._scrape_target(input_url, options)

            # 2. Extract profile
            await begin(events.EXTRACTING, "Analyzing startup...")
            profile = await self._extract_profile(content, options)
            await deliver(sink, event(
                events.STARTUP_INFO,
                f"Identified: {profile.name}",
                {"startup": profile.model_dump(mode="json", by_alias=True)},
            ))

            # 3. Search competitors
            await begin(events.SEARCHING, f"Finding competitors for {profile.name}...")
            results = await self._search_competitors(profile, options)

            # 4. Rank competitors
            await begin(events.RANKING, "Ranking top competitors...")
            candidates = await self._rank_competitors(input_url, profile, results, options)
            await deliver(sink, event(
                events.COMPETITORS_FOUND,
                f"Found {len(candidates)} competitors",
                {"competitors": [c.model_dump() for c in candidates]},
            ))

            # 5. Deep-scrape competitors
            await begin(events.DEEP_SCRAPING, f"Deep scraping {len(candidates)} competitors...")
            raw_data = await self._deep_scrape(candidates, sink, options)

            # 6. Synthesize analysis
            await begin(events.ANALYZING, "Generating competitive analysis...")
            analysis = await self._analyze(profile, raw_data, options)
            await deliver(sink, event(
                events.ANALYSIS_READY,
                "Analysis complete",
                {"analysis": analysis.model_dump(mode="json", by_alias=True)},
            ))

            report = Report(
                source_url=input_url,
                company_name=profile.name,
                company_summary=profile.product,
                competitors=analysis.competitors,
                market_intelligence=analysis.market_intelligence,
                recommendations=analysis.recommendations,
                market_overview=analysis.market_overview,
            )

            # 7. Persist
            persisted = False
            if options.persist:
                await begin(events.STORING, "Saving to database...")
                await self._persist(report, options)
                persisted = True

        except PipelineError:
            raise
        except Exception as e:
            raise PipelineError(stage, e) from e

        await deliver(sink, event(events.DONE, "Analysis complete!", {"reportId": report.id}))
        return PipelineRun(report=report, persisted=persisted)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _scrape_target(self, url: str, options: PipelineOptions) -> str:
        content = await _bounded(
            self.fetcher.fetch(url), options.stage_timeout, ScrapeError, f"fetching {url}",
        )
        content = truncate((content or "").strip(), self.config.target_max_chars)
        if not content:
            raise ScrapeError(f"Failed to scrape {url}: no content")
        return content

    async def _extract_profile(self, content: str, options: PipelineOptions) -> CompanyProfile:
        raw = await _bounded(
            self.llm.complete(build_extraction_prompt(content)),
            options.stage_timeout, ExtractionError, "profile extraction",
        )
        try:
            return parse_company_profile(raw)
        except MalformedResponseError as e:
            raise ExtractionError(str(e)) from e

    async def _search_competitors(
        self, profile: CompanyProfile, options: PipelineOptions,
    ) -> list[SearchResult]:
        """Run every query concurrently; a failed query contributes no results."""
        queries = generate_queries(profile)
        limit = self.config.search_results_per_query

        query_results = await asyncio.gather(
            *[
                asyncio.wait_for(self.searcher.search(q["query"], limit), options.stage_timeout)
                for q in queries
            ],
            return_exceptions=True,
        )

        all_results: list[SearchResult] = []
        for q, qr in zip(queries, query_results):
            if isinstance(qr, list):
                all_results.extend(qr)
            else:
                logger.warning("Search query '%s' failed: %r", q["query"][:80], qr)
        logger.info("Collected %d search results from %d queries", len(all_results), len(queries))
        return all_results

    async def _rank_competitors(
        self,
        input_url: str,
        profile: CompanyProfile,
        results: list[SearchResult],
        options: PipelineOptions,
    ) -> list[CompetitorCandidate]:
        prompt = build_ranking_prompt(profile, results, options.max_competitors)
        raw = await _bounded(
            self.llm.complete(prompt), options.stage_timeout, RankingError, "competitor ranking",
        )
        try:
            ranked = parse_candidates(raw)
        except MalformedResponseError as e:
            raise RankingError(str(e)) from e
        return filter_candidates(ranked, profile.name, input_url, options.max_competitors)

    async def _deep_scrape(
        self,
        candidates: list[CompetitorCandidate],
        sink: ProgressSink | None,
        options: PipelineOptions,
    ) -> list[CompetitorRawData]:
        """Scrape every candidate concurrently. Results keep the candidate order."""
        cfg = self.config

        async def scrape_one(candidate: CompetitorCandidate) -> CompetitorRawData:
            await deliver(sink, event(
                events.COMPETITOR_SCRAPING, f"Scraping {candidate.name}...", {"name": candidate.name},
            ))
            homepage, pricing, about, careers = await asyncio.gather(
                *[self._fetch_optional(f"{candidate.url}{path}", options) for path in SUBPAGES]
            )
            pdf_content = await self._parse_first_pdf(
                candidate, [homepage, pricing, about, careers], options,
            )
            await deliver(sink, event(
                events.COMPETITOR_DONE, f"{candidate.name} scraped", {"name": candidate.name},
            ))
            return CompetitorRawData(
                name=candidate.name,
                url=candidate.url,
                homepage=truncate(homepage, cfg.homepage_max_chars),
                pricing=truncate(pricing, cfg.subpage_max_chars),
                about=truncate(about, cfg.subpage_max_chars),
                careers=truncate(careers, cfg.subpage_max_chars),
                pdf_content=truncate(pdf_content, cfg.pdf_max_chars),
            )

        return list(await asyncio.gather(*[scrape_one(c) for c in candidates]))

    async def _fetch_optional(self, url: str, options: PipelineOptions) -> str:
        """Best-effort sub-page fetch: any failure yields empty content."""
        try:
            return await asyncio.wait_for(self.fetcher.fetch(url), options.stage_timeout) or ""
        except asyncio.TimeoutError:
            logger.info("Sub-page fetch timed out: %s", url)
        except Exception as e:
            logger.info("Sub-page fetch failed for %s: %s", url, e)
        return ""

    async def _parse_first_pdf(
        self,
        candidate: CompetitorCandidate,
        pages: list[str],
        options: PipelineOptions,
    ) -> str:
        """Parse at most one linked PDF. Best-effort: failure yields ""."""
        links = find_pdf_links(*pages)
        if not links:
            return ""
        pdf_url = links[0]
        try:
            text = await asyncio.wait_for(self.pdf_parser.parse_pdf(pdf_url), options.pdf_timeout)
        except asyncio.TimeoutError:
            logger.info("PDF parse timed out for %s: %s", candidate.name, pdf_url)
            return ""
        except Exception as e:
            logger.info("PDF parse failed for %s: %s", candidate.name, e)
            return ""
        return text or ""

    async def _analyze(
        self,
        profile: CompanyProfile,
        raw_data: list[CompetitorRawData],
        options: PipelineOptions,
    ) -> AnalysisResult:
        fitted = fit_to_budget(raw_data, self.config.analysis_budget_chars)
        prompt = build_analysis_prompt(profile, fitted)
        raw = await _bounded(
            self.llm.complete(prompt, system=ANALYSIS_SYSTEM),
            options.stage_timeout, AnalysisError, "competitive analysis",
        )
        try:
            analysis = parse_analysis(raw)
        except MalformedResponseError as e:
            raise AnalysisError(str(e)) from e

        competitors = reconcile_analyses(analysis.competitors, [d.candidate for d in raw_data])
        return analysis.model_copy(update={"competitors": competitors})

    async def _persist(self, report: Report, options: PipelineOptions) -> None:
        if self.store is None:
            raise PersistenceError("no report store configured")
        # the store rolls back a write that overruns stage_timeout
        try:
            await asyncio.to_thread(self.store.save, report, options.stage_timeout)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"saving report failed: {e}") from e

    async def _notify(
        self,
        result: PipelineRun,
        sink: ProgressSink | None,
        options: PipelineOptions,
    ) -> None:
        """Email the report if a recipient was given. Failures become warnings."""
        recipient = options.recipient_email
        if not recipient:
            return
        report = result.report

        await deliver(sink, event(events.EMAILING, f"Sending report to {recipient}..."))
        try:
            if self.notifier is None:
                raise NotifyError("no email notifier configured")
            await _bounded(
                send_report(report, recipient, self.notifier),
                options.stage_timeout, NotifyError, f"emailing {recipient}",
            )
        except NotifyError as e:
            warning = f"Report {report.id} is ready, but the email to {recipient} failed: {e}"
            logger.warning(warning)
            result.warnings.append(warning)
            await deliver(sink, event(events.WARNING, warning, {"stage": events.EMAILING}))
            return

        result.email_sent = True
        report.report_sent = True
        report.recipient_email = recipient
        if result.persisted:
            try:
                await asyncio.to_thread(self.store.mark_sent, report.id, recipient)
            except PersistenceError as e:
                warning = f"Report {report.id} was emailed but could not be marked sent: {e}"
                logger.warning(warning)
                result.warnings.append(warning)
                await deliver(sink, event(events.WARNING, warning, {"stage": events.EMAILING}))
                return
        await deliver(sink, event(events.EMAILING, f"Report sent to {recipient}", {"sent": True}))


async def _bounded(
    awaitable: Awaitable[T],
    timeout: float,
    error_cls: type[CompetitorIntelError],
    what: str,
) -> T:
    """Await a mandatory external call; timeouts and failures become ``error_cls``."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise error_cls(f"{what} timed out after {timeout:g}s") from e
    except error_cls:
        raise
    except Exception as e:
        raise error_cls(f"{what} failed: {e}") from e
