"""
API routes for payment confirmation.
"""
import time
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import quote

import pydantic
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from payment_confirmation.config import Settings
from payment_confirmation.core.event_tracker import EventTracker, EventType
from payment_confirmation.core.exceptions import (
    AuthenticityError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from payment_confirmation.core.verification import VerificationService
from payment_confirmation.core.webhook_ingestor import IngestionResult, WebhookIngestor
from payment_confirmation.monitoring.health import HealthCheck
from payment_confirmation.monitoring.metrics import metrics

from .dependencies import (
    get_app_settings,
    get_event_tracker,
    get_health_check,
    get_verification_service,
    get_webhook_ingestor,
)
from .schemas import (
    HealthCheckResponse,
    TrackEventRequest,
    VerifyPaymentError,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
payment_router = APIRouter(prefix="/payment", tags=["payment"])
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])
tracking_router = APIRouter(tags=["analytics"])
monitoring_router = APIRouter(tags=["monitoring"])

REDIRECT_ERROR_MESSAGES = {
    "PAYMENT_EXPIRED": "Payment session expired",
    "PAYMENT_CANCELLED": "Payment was cancelled",
    "INSUFFICIENT_BALANCE": "Insufficient balance",
}

WebhookHandler = Callable[[bytes, Optional[str]], Awaitable[IngestionResult]]


def _verification_error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"verified": False, "error": error})


def _webhook_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@payment_router.post(
    "/verify",
    response_model=VerifyPaymentResponse,
    responses={
        400: {"model": VerifyPaymentError},
        404: {"model": VerifyPaymentError},
        500: {"model": VerifyPaymentError},
    },
    summary="Verify a payment",
    description="Report whether a transaction has been completed",
)
async def verify_payment(
    request: Request,
    service: VerificationService = Depends(get_verification_service),
) -> Any:
    """
    Verify a transaction after the client is redirected back from checkout.

    Always answers with a ``verified`` flag so the client can branch without
    special-casing errors.
    """
    try:
        body = VerifyPaymentRequest.model_validate(await request.json())
    except (ValueError, pydantic.ValidationError):
        logger.warning("api_verify_payment_invalid_body")
        metrics.record_verification("invalid")
        return _verification_error(status.HTTP_400_BAD_REQUEST, "Transaction ID is required")

    try:
        result = await service.verify(body.transactionId)

    except ValidationError as e:
        return _verification_error(e.status_code, str(e))

    except NotFoundError:
        return _verification_error(status.HTTP_404_NOT_FOUND, "Transaction not found")

    except DependencyError as e:
        logger.error(
            "api_verify_payment_dependency_error",
            transaction_id=body.transactionId,
            error=str(e),
        )
        metrics.record_verification("error")
        return _verification_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Verification failed")

    except Exception as e:
        logger.error(
            "api_verify_payment_unexpected_error",
            transaction_id=body.transactionId,
            error=str(e),
        )
        metrics.record_verification("error")
        return _verification_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Verification failed")

    return result.to_dict()


async def _handle_webhook(
    endpoint: str,
    handler: WebhookHandler,
    request: Request,
    settings: Settings,
) -> Any:
    start_time = time.time()
    body = await request.body()
    signature = request.headers.get(settings.provider_signature_header)

    try:
        result = await handler(body, signature)

    except AuthenticityError as e:
        metrics.record_webhook(endpoint, "unauthorized", time.time() - start_time)
        return _webhook_error(e.status_code, str(e))

    except ValidationError as e:
        logger.warning("api_webhook_rejected", endpoint=endpoint, error=str(e))
        metrics.record_webhook(endpoint, "rejected", time.time() - start_time)
        return _webhook_error(e.status_code, str(e))

    except DependencyError as e:
        logger.error("api_webhook_dependency_error", endpoint=endpoint, error=str(e))
        metrics.record_webhook(endpoint, "error", time.time() - start_time)
        return _webhook_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error processing webhook")

    except Exception as e:
        logger.error("api_webhook_unexpected_error", endpoint=endpoint, error=str(e))
        metrics.record_webhook(endpoint, "error", time.time() - start_time)
        return _webhook_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Error processing webhook")

    duration = time.time() - start_time
    metrics.record_webhook(endpoint, result.outcome, duration)
    logger.info(
        "api_webhook_processed",
        endpoint=endpoint,
        outcome=result.outcome,
        transaction_id=result.transaction_id,
        duration_seconds=duration,
    )
    return {"success": True}


@webhook_router.post(
    "/payment-code",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    summary="Payment code webhook",
    description="Payment code issued/paid notifications from the provider",
)
async def payment_code_webhook(
    request: Request,
    ingestor: WebhookIngestor = Depends(get_webhook_ingestor),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """
    Record a payment code notification.

    Answers 200 for accepted deliveries and for no-ops, so the provider only
    retries real failures.
    """
    return await _handle_webhook("payment_code", ingestor.ingest_payment_code, request, settings)


@webhook_router.post(
    "/notify",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    summary="Payment status webhook",
    description="Payment status change notifications from the provider",
)
async def status_notification_webhook(
    request: Request,
    ingestor: WebhookIngestor = Depends(get_webhook_ingestor),
    settings: Settings = Depends(get_app_settings),
) -> Any:
    """Apply a payment status change to an existing transaction."""
    return await _handle_webhook(
        "notify", ingestor.ingest_status_notification, request, settings
    )


def build_redirect_url(
    base_url: str,
    payment_status: Optional[str],
    order_no: Optional[str],
    error_code: Optional[str],
) -> str:
    """
    Pick where to send the user after checkout.

    Args:
        base_url: Public URL of the web client
        payment_status: Status reported in the redirect
        order_no: Transaction identifier
        error_code: Provider error code, if any

    Returns:
        str: Absolute redirect URL
    """
    base_url = base_url.rstrip("/")
    if (payment_status or "").upper() in ("SUCCESS", "COMPLETED"):
        return f"{base_url}/success?transaction_id={quote(order_no or '')}"

    message = "Payment canceled or failed"
    if error_code:
        message = REDIRECT_ERROR_MESSAGES.get(error_code, f"Payment failed: {error_code}")
    return f"{base_url}/?error={quote(message)}"


@webhook_router.get(
    "/redirect",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    summary="Checkout redirect",
    description="Landing point for users returning from the provider's checkout",
)
async def payment_redirect(
    request: Request,
    payment_status: Optional[str] = Query(default=None, alias="status"),
    merchant_order_no: Optional[str] = Query(default=None, alias="merchantOrderNo"),
    transaction_id: Optional[str] = Query(default=None),
    error_code: Optional[str] = Query(default=None, alias="errorCode"),
    tracker: EventTracker = Depends(get_event_tracker),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """Send the user to the success page or back home with an error."""
    order_no = merchant_order_no or transaction_id
    error_code = error_code or request.query_params.get("error_code")

    logger.info(
        "payment_redirect_received",
        status=payment_status,
        merchant_order_no=order_no,
        error_code=error_code,
    )
    tracker.emit(
        EventType.PAYMENT_REDIRECT,
        {"status": payment_status, "merchantOrderNo": order_no, "errorCode": error_code},
    )

    return RedirectResponse(
        url=build_redirect_url(settings.app_base_url, payment_status, order_no, error_code),
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )


@tracking_router.post(
    "/track",
    summary="Track a client event",
    description="Forward a client analytics event to the event sink",
)
async def track_event(
    request: Request,
    tracker: EventTracker = Depends(get_event_tracker),
) -> Any:
    """Accept a client-side analytics event."""
    try:
        body = TrackEventRequest.model_validate(await request.json())
    except (ValueError, pydantic.ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid event payload"}
        )

    if not body.event:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Missing event type"}
        )

    # Only the first address survives proxies
    ip = request.headers.get("x-forwarded-for", "unknown").split(",")[0].strip()
    attributes: Dict[str, Any] = {**(body.data or {}), "ip": ip}
    if body.timestamp:
        attributes["timestamp"] = body.timestamp

    logger.info("tracking_event", event_type=body.event)
    tracker.emit(body.event, attributes)

    return {"success": True}


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    return await health_check.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
    description="Kubernetes liveness probe endpoint",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Liveness probe endpoint."""
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
    description="Kubernetes readiness probe endpoint",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Readiness probe endpoint."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
