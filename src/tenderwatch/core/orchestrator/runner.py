"""
Pipeline runner.

Coordinates one full pass: scrape → reconcile expiry → build queue →
process queue. Stage results only feed logging; a later stage never
rolls back an earlier one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.core.config.models import AppConfig
from tenderwatch.core.logging import get_contextual_logger
from tenderwatch.core.notify.email import EmailSender, create_sender
from tenderwatch.core.portals.base import TenderSource
from tenderwatch.core.portals.gem import GemListingSource
from tenderwatch.persistence.models import utcnow

from .dispatch import DispatchProcessor, DispatchResult
from .expiry import ExpiryReconciler
from .matcher import QueueBuilder
from .scraper import ScrapeResult, TenderScraper

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Per-stage outcome of one pipeline pass."""

    trigger: str
    scrape: ScrapeResult | None = None
    expired: int = 0
    queued: int = 0
    dispatch: DispatchResult | None = None

    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "scrape": self.scrape.to_dict() if self.scrape else None,
            "expired": self.expired,
            "queued": self.queued,
            "dispatch": self.dispatch.to_dict() if self.dispatch else None,
            "duration_seconds": self.duration_seconds,
        }


class PipelineRunner:
    """Runs the four stages in order."""

    def __init__(
        self,
        scraper: TenderScraper,
        reconciler: ExpiryReconciler,
        queue_builder: QueueBuilder,
        dispatcher: DispatchProcessor,
        *,
        batch_size: int = 200,
    ) -> None:
        self.scraper = scraper
        self.reconciler = reconciler
        self.queue_builder = queue_builder
        self.dispatcher = dispatcher
        self.batch_size = batch_size

    async def run(self, pages: int, today_only: bool = True, trigger: str = "manual") -> PipelineResult:
        """Execute one pass.

        The synchronous database stages run in a worker thread so the
        event loop stays responsive.

        Raises:
            ListingUnavailableError: The scrape could not start; later
                stages are skipped
        """
        result = PipelineResult(trigger=trigger)
        log = get_contextual_logger("pipeline", trigger=trigger)

        log.with_context(stage="scrape").info("Scraping %s page(s), today_only=%s", pages or "all", today_only)
        result.scrape = await self.scraper.scrape(max_pages=pages, today_only=today_only, run_type=trigger)
        log = log.with_context(run_id=result.scrape.run_id)

        result.expired = await asyncio.to_thread(self.reconciler.reconcile_expired)
        log.with_context(stage="expiry").info("%d tender(s) expired", result.expired)

        result.queued = await asyncio.to_thread(self.queue_builder.build_queue)
        log.with_context(stage="match").info("%d notification(s) queued", result.queued)

        result.dispatch = await asyncio.to_thread(self.dispatcher.process_queue, self.batch_size)
        log.with_context(stage="dispatch").info(
            "%d row(s) sent, %d failed",
            result.dispatch.sent,
            result.dispatch.failed,
        )

        result.finished_at = utcnow()
        log.info("Pipeline finished in %.1fs", result.duration_seconds or 0.0)
        return result


def build_pipeline(
    config: AppConfig,
    session_factory: sessionmaker[Session],
    *,
    source_factory: Callable[[], TenderSource] | None = None,
    sender: EmailSender | None = None,
) -> PipelineRunner:
    """Wire a PipelineRunner from application configuration."""
    if source_factory is None:

        def source_factory() -> TenderSource:
            return GemListingSource(config.scraper)

    return PipelineRunner(
        scraper=TenderScraper(session_factory, source_factory, regions=config.scraper.regions),
        reconciler=ExpiryReconciler(session_factory),
        queue_builder=QueueBuilder(session_factory, lookback_minutes=config.matcher.lookback_minutes),
        dispatcher=DispatchProcessor(
            session_factory,
            sender or create_sender(config.email),
            display_limit=config.dispatch.display_limit,
            frontend_url=config.dispatch.frontend_url,
        ),
        batch_size=config.dispatch.batch_size,
    )
