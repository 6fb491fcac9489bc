"""
TenderWatch - GeM tender ingestion and subscription alerting.

Scrapes the GeM bid listing, stores new tenders, matches them against
customer subscriptions and emails batched alerts.
"""

__version__ = "0.1.0"
__app_name__ = "tenderwatch"
