"""Shared fixtures: a throwaway SQLite database and record builders."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from tenderwatch.persistence.db import create_db_engine, create_session_factory, session_scope
from tenderwatch.persistence.models import Base, Customer, Subscription, Tender, TenderStatus

FIXTURES = Path(__file__).parent / "fixtures"

# Portal-local "now" matching the dates in gem_listing_page.html
FIXTURE_NOW = datetime(2026, 10, 19, 12, 0)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def listing_html() -> str:
    return (FIXTURES / "gem_listing_page.html").read_text(encoding="utf-8")


@pytest.fixture
def listing_page():
    """Build a minimal listing page from (reference, title, department, start, end) tuples."""

    def build(*cards: tuple[str, str, str, str, str]) -> str:
        body = "".join(
            f"""
            <div class="card">
              <div class="block_header"><a class="bid_no_hover" href="/bid/{ref}">{ref}</a></div>
              <div class="card-body">
                <div class="col-md-4"><a data-content="{title}">{title}</a></div>
                <div class="col-md-5">{department}</div>
                <span class="start_date">{start}</span>
                <span class="end_date">{end}</span>
              </div>
            </div>"""
            for ref, title, department, start, end in cards
        )
        return f"<html><body>{body}</body></html>"

    return build


@pytest.fixture
def add_tender(session_factory):
    def add(reference_id: str, **fields) -> int:
        values = {
            "title": "Untitled tender",
            "status": TenderStatus.ACTIVE.value,
            **fields,
        }
        with session_scope(session_factory) as session:
            tender = Tender(reference_id=reference_id, **values)
            session.add(tender)
            session.flush()
            return tender.id

    return add


@pytest.fixture
def add_customer(session_factory):
    def add(
        name: str = "Acme Supplies",
        email: str | None = "buyer@acme.example",
        *,
        categories: list[str] | None = None,
        regions: list[str] | None = None,
        billing_active: bool = True,
        subscription_active: bool = True,
    ) -> int:
        with session_scope(session_factory) as session:
            customer = Customer(name=name, email=email, billing_active=billing_active)
            customer.subscription = Subscription(
                categories=categories or [],
                regions=regions or [],
                is_active=subscription_active,
            )
            session.add(customer)
            session.flush()
            return customer.id

    return add
