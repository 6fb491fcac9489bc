"""
Tender scraper stage.

Walks the listing through a TenderSource, filters records and persists
the new ones: source → filter → dedup → classify → insert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.core.config.models import DEFAULT_REGIONS
from tenderwatch.core.extract.base import ListingRecord
from tenderwatch.core.normalize.regions import classify_region
from tenderwatch.core.portals.base import TenderSource
from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.models import RunStatus, utcnow
from tenderwatch.persistence.repo import RunRepository, TenderRepository

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Counters for one scrape invocation."""

    added: int = 0
    duplicate_skipped: int = 0
    date_filtered_skipped: int = 0
    expired_skipped: int = 0
    pages_scraped: int = 0
    records_found: int = 0
    errors_count: int = 0
    stopped_early: bool = False

    run_id: int | None = None
    started_at: datetime = field(default_factory=utcnow)
    finished_at: datetime | None = None

    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, int]:
        """Result shape reported to trigger callers."""
        return {
            "added": self.added,
            "duplicateSkipped": self.duplicate_skipped,
            "dateFilteredSkipped": self.date_filtered_skipped,
        }

    def to_stats(self) -> dict[str, Any]:
        """Counters keyed by ScrapeRun column name."""
        return {
            "pages_scraped": self.pages_scraped,
            "records_found": self.records_found,
            "records_added": self.added,
            "duplicate_skipped": self.duplicate_skipped,
            "date_filtered_skipped": self.date_filtered_skipped,
            "expired_skipped": self.expired_skipped,
            "errors_count": self.errors_count,
        }


@dataclass
class PageOutcome:
    """What happened to the records of a single page."""

    added: int = 0
    duplicates: int = 0
    date_filtered: int = 0
    expired: int = 0
    errors: list[str] = field(default_factory=list)
    saw_older_record: bool = False


class TenderScraper:
    """Ingests new tenders from a listing source.

    Only inserts: a stored tender is never updated here. Each record is
    written inside its own SAVEPOINT so one bad row leaves its siblings on
    the page intact.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        source_factory: Callable[[], TenderSource],
        *,
        regions: Sequence[str] = DEFAULT_REGIONS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the scraper.

        Args:
            session_factory: Factory for database sessions
            source_factory: Builds a fresh, unopened source per invocation
            regions: Region gazetteer, matched in order
            clock: Portal-local "now"; the today-only filter and expiry
                skip compare against it
        """
        self.session_factory = session_factory
        self.source_factory = source_factory
        self.regions = list(regions)
        self.clock = clock

    async def scrape(
        self,
        max_pages: int = 5,
        today_only: bool = True,
        run_type: str = "manual",
    ) -> ScrapeResult:
        """Scrape up to ``max_pages`` listing pages (0 = no cap).

        Raises:
            ListingUnavailableError: The listing never loaded
        """
        result = ScrapeResult()

        with session_scope(self.session_factory) as session:
            run = RunRepository(session).create(run_type=run_type, max_pages=max_pages, today_only=today_only)
            result.run_id = run.id

        logger.info(
            "Scrape run %s started (max_pages=%s, today_only=%s)",
            result.run_id,
            max_pages or "all",
            today_only,
        )

        try:
            async with self.source_factory() as source:
                await self._walk(source, result, max_pages, today_only)
        except Exception as e:
            result.finished_at = utcnow()
            self._finish_run(result, RunStatus.FAILED, f"{type(e).__name__}: {e}")
            logger.error("Scrape run %s failed: %s", result.run_id, e)
            raise

        result.finished_at = utcnow()
        self._finish_run(result, RunStatus.COMPLETED)
        logger.info(
            "Scrape run %s done: %d added, %d duplicate, %d date-filtered, %d expired over %d page(s)",
            result.run_id,
            result.added,
            result.duplicate_skipped,
            result.date_filtered_skipped,
            result.expired_skipped,
            result.pages_scraped,
        )
        return result

    async def _walk(self, source: TenderSource, result: ScrapeResult, max_pages: int, today_only: bool) -> None:
        while True:
            page_number = source.page_number
            records = await source.fetch_page()
            result.pages_scraped += 1

            if not records:
                logger.warning("Page %d yielded no records; stopping", page_number)
                break

            result.records_found += len(records)
            outcome = self._ingest_page(records, source.name, today_only)

            result.added += outcome.added
            result.duplicate_skipped += outcome.duplicates
            result.date_filtered_skipped += outcome.date_filtered
            result.expired_skipped += outcome.expired
            result.errors_count += len(outcome.errors)
            result.errors.extend(outcome.errors)
            self._record_progress(result)

            logger.info(
                "Page %d: %d records, %d added, %d duplicate, %d date-filtered, %d expired",
                page_number,
                len(records),
                outcome.added,
                outcome.duplicates,
                outcome.date_filtered,
                outcome.expired,
            )

            # Assumes the listing is sorted newest first
            if today_only and outcome.added == 0 and outcome.saw_older_record:
                logger.info("Page %d added nothing and reached older tenders; stopping early", page_number)
                result.stopped_early = True
                break

            if max_pages and result.pages_scraped >= max_pages:
                break

            if not await source.next_page():
                break

    def _ingest_page(self, records: list[ListingRecord], source_name: str, today_only: bool) -> PageOutcome:
        outcome = PageOutcome()
        now = self.clock()
        today = now.date()

        with session_scope(self.session_factory) as session:
            repo = TenderRepository(session)
            existing = repo.existing_reference_ids(r.reference_id for r in records)

            for record in records:
                if _starts_before(record, today):
                    outcome.saw_older_record = True

                if record.closing_at is not None and record.closing_at < now:
                    outcome.expired += 1
                    continue

                if today_only and record.published_at is not None and record.published_at.date() != today:
                    outcome.date_filtered += 1
                    continue

                if record.reference_id in existing:
                    outcome.duplicates += 1
                    continue

                try:
                    with session.begin_nested():
                        repo.add(
                            reference_id=record.reference_id,
                            title=record.title,
                            description=record.description,
                            category=record.category,
                            region=classify_region(record.description, self.regions),
                            quantity=record.quantity,
                            published_at=record.published_at,
                            closing_at=record.closing_at,
                            source=source_name,
                            source_url=record.detail_url,
                        )
                except IntegrityError:
                    outcome.duplicates += 1
                    existing.add(record.reference_id)
                    continue
                except SQLAlchemyError as e:
                    message = f"{record.reference_id}: {e}"
                    logger.error("Failed to save tender %s", message)
                    outcome.errors.append(message)
                    continue

                existing.add(record.reference_id)
                outcome.added += 1

        return outcome

    def _record_progress(self, result: ScrapeResult) -> None:
        with session_scope(self.session_factory) as session:
            RunRepository(session).record_stats(result.run_id, result.to_stats())

    def _finish_run(self, result: ScrapeResult, status: RunStatus, error: str | None = None) -> None:
        try:
            with session_scope(self.session_factory) as session:
                repo = RunRepository(session)
                repo.record_stats(result.run_id, result.to_stats())
                repo.complete(result.run_id, status=status.value, error_message=error)
        except SQLAlchemyError:
            logger.exception("Could not finalise scrape run %s", result.run_id)


def _starts_before(record: ListingRecord, day: date) -> bool:
    return record.published_at is not None and record.published_at.date() < day
