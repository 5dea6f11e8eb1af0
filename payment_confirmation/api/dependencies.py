"""
Request dependencies.

Services are built once at startup and stored on ``app.state``; handlers
receive them through these accessors instead of module globals.
"""
from fastapi import Request

from payment_confirmation.config import Settings
from payment_confirmation.core.event_tracker import EventTracker
from payment_confirmation.core.verification import VerificationService
from payment_confirmation.core.webhook_ingestor import WebhookIngestor
from payment_confirmation.monitoring.health import HealthCheck


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification_service


def get_webhook_ingestor(request: Request) -> WebhookIngestor:
    return request.app.state.webhook_ingestor


def get_event_tracker(request: Request) -> EventTracker:
    return request.app.state.event_tracker


def get_health_check(request: Request) -> HealthCheck:
    return request.app.state.health_check
