"""Pipeline stages and the runner that chains them."""

from .dispatch import DispatchProcessor, DispatchResult, render_email, requeue_failed
from .expiry import ExpiryReconciler
from .matcher import QueueBuilder, subscription_matches
from .runner import PipelineResult, PipelineRunner, build_pipeline
from .scraper import ScrapeResult, TenderScraper

__all__ = [
    "TenderScraper",
    "ScrapeResult",
    "ExpiryReconciler",
    "QueueBuilder",
    "subscription_matches",
    "DispatchProcessor",
    "DispatchResult",
    "render_email",
    "requeue_failed",
    "PipelineRunner",
    "PipelineResult",
    "build_pipeline",
]
