from datetime import datetime, timedelta

from sqlalchemy import select

from tenderwatch.core.errors import DeliveryError
from tenderwatch.core.notify.email import EmailSender
from tenderwatch.core.orchestrator.dispatch import (
    NO_EMAIL_ERROR,
    DispatchProcessor,
    render_email,
    requeue_failed,
)
from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.models import DispatchQueueItem, Tender

NOW = datetime(2026, 10, 19, 6, 30)


class RecordingSender(EmailSender):
    def __init__(self, outcome=True):
        self.outcome = outcome
        self.calls: list[tuple[str, str, str]] = []

    def send(self, to, subject, html):
        self.calls.append((to, subject, html))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def enqueue(session_factory, tender_ids, customer_id):
    with session_scope(session_factory) as session:
        for tender_id in tender_ids:
            session.add(DispatchQueueItem(tender_id=tender_id, customer_id=customer_id))


def queue_rows(session_factory):
    with session_scope(session_factory) as session:
        return list(session.execute(select(DispatchQueueItem).order_by(DispatchQueueItem.id)).scalars())


def processor(session_factory, sender, **kwargs):
    return DispatchProcessor(session_factory, sender, clock=lambda: NOW, **kwargs)


def three_pending(session_factory, add_tender, add_customer, email="buyer@acme.example"):
    tenders = [add_tender(f"GEM/2026/B/{n}", title=f"Tender {n}") for n in range(3)]
    customer = add_customer(email=email)
    enqueue(session_factory, tenders, customer)
    return customer


def test_one_email_per_customer_and_all_rows_sent(session_factory, add_tender, add_customer):
    three_pending(session_factory, add_tender, add_customer)
    sender = RecordingSender()

    result = processor(session_factory, sender).process_queue(batch_size=200)

    assert len(sender.calls) == 1
    to, subject, html = sender.calls[0]
    assert to == "buyer@acme.example"
    assert subject == "\U0001F514 3 New Tenders Matching Your Preferences"
    for n in range(3):
        assert f"GEM/2026/B/{n}" in html

    assert result.sent == 3
    assert result.emails_sent == 1
    rows = queue_rows(session_factory)
    assert {r.status for r in rows} == {"SENT"}
    assert all(r.last_attempt_at == NOW for r in rows)
    assert all(r.retry_count == 0 for r in rows)


def test_send_exception_fails_the_whole_group(session_factory, add_tender, add_customer):
    three_pending(session_factory, add_tender, add_customer)
    sender = RecordingSender(DeliveryError("relay refused"))

    result = processor(session_factory, sender).process_queue()

    assert len(sender.calls) == 1
    assert result.sent == 0
    assert result.failed == 3
    rows = queue_rows(session_factory)
    assert {r.status for r in rows} == {"FAILED"}
    assert {r.error_message for r in rows} == {"relay refused"}
    assert all(r.retry_count == 1 for r in rows)
    assert all(r.last_attempt_at == NOW for r in rows)


def test_false_return_is_a_failure(session_factory, add_tender, add_customer):
    three_pending(session_factory, add_tender, add_customer)

    result = processor(session_factory, RecordingSender(False)).process_queue()

    assert result.failed == 3
    assert {r.status for r in queue_rows(session_factory)} == {"FAILED"}


def test_customer_without_email_is_failed_without_sending(session_factory, add_tender, add_customer):
    three_pending(session_factory, add_tender, add_customer, email="   ")
    sender = RecordingSender()

    result = processor(session_factory, sender).process_queue()

    assert sender.calls == []
    assert result.failed == 3
    rows = queue_rows(session_factory)
    assert {r.error_message for r in rows} == {NO_EMAIL_ERROR}
    assert all(r.retry_count == 0 for r in rows)
    assert all(r.last_attempt_at == NOW for r in rows)


def test_failure_of_one_group_does_not_stop_the_next(session_factory, add_tender, add_customer):
    tender = add_tender("GEM/1", title="Laptops")
    broken = add_customer("Broken", None)
    fine = add_customer("Fine", "fine@example.com")
    enqueue(session_factory, [tender], broken)
    enqueue(session_factory, [tender], fine)
    sender = RecordingSender()

    result = processor(session_factory, sender).process_queue()

    assert result.groups == 2
    assert [call[0] for call in sender.calls] == ["fine@example.com"]
    statuses = {r.customer_id: r.status for r in queue_rows(session_factory)}
    assert statuses == {broken: "FAILED", fine: "SENT"}


def test_batch_size_limits_rows(session_factory, add_tender, add_customer):
    three_pending(session_factory, add_tender, add_customer)

    result = processor(session_factory, RecordingSender()).process_queue(batch_size=2)

    assert result.sent == 2
    assert [r.status for r in queue_rows(session_factory)] == ["SENT", "SENT", "PENDING"]


def test_empty_queue(session_factory):
    sender = RecordingSender()
    result = processor(session_factory, sender).process_queue()
    assert result.sent == 0
    assert sender.calls == []


class TestRenderEmail:
    def tenders(self, count):
        return [
            Tender(reference_id=f"GEM/{n}", title=f"Item {n}", region="Goa", closing_at=datetime(2026, 10, 30, 15, 0))
            for n in range(count)
        ]

    def test_overflow_line(self):
        subject, html = render_email("Acme", self.tenders(12), display_limit=10)

        assert subject.startswith("\U0001F514 12 New Tenders")
        assert "...and 2 more tenders" in html
        assert "GEM/9" in html
        assert "GEM/10" not in html
        assert "30/10/2026" in html

    def test_singular_subject_and_link(self):
        subject, html = render_email("Acme", self.tenders(1), frontend_url="https://app.example/")
        assert subject == "\U0001F514 1 New Tender Matching Your Preferences"
        assert 'href="https://app.example/scraped-tenders"' in html
        assert "more tenders" not in html

    def test_values_are_escaped(self):
        tender = Tender(reference_id="GEM/1", title="<script>alert(1)</script>", region=None)
        _, html = render_email("Tom & Jerry", [tender])
        assert "<script>" not in html
        assert "Tom &amp; Jerry" in html
        assert "N/A" in html


def test_requeue_failed_respects_attempts_and_backoff(session_factory, add_tender, add_customer):
    tenders = [add_tender(f"GEM/{n}") for n in range(4)]
    customer = add_customer()
    with session_scope(session_factory) as session:
        session.add_all([
            # one failure 40 minutes ago: 30 minute backoff has passed
            DispatchQueueItem(tender_id=tenders[0], customer_id=customer, status="FAILED",
                              retry_count=1, last_attempt_at=NOW - timedelta(minutes=40)),
            # two failures 40 minutes ago: needs 60 minutes
            DispatchQueueItem(tender_id=tenders[1], customer_id=customer, status="FAILED",
                              retry_count=2, last_attempt_at=NOW - timedelta(minutes=40)),
            # attempts exhausted
            DispatchQueueItem(tender_id=tenders[2], customer_id=customer, status="FAILED",
                              retry_count=3, last_attempt_at=NOW - timedelta(days=1)),
            # never attempted a send (no email address)
            DispatchQueueItem(tender_id=tenders[3], customer_id=customer, status="FAILED",
                              retry_count=0, last_attempt_at=NOW - timedelta(days=1)),
        ])

    count = requeue_failed(session_factory, max_attempts=3, backoff_minutes=30, now=NOW)

    assert count == 1
    assert [r.status for r in queue_rows(session_factory)] == ["PENDING", "FAILED", "FAILED", "FAILED"]
