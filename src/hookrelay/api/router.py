"""FastAPI router for HookRelay API endpoints.

The surrounding authentication layer is expected to resolve the caller's
organization and pass it in the ``X-Organization-Id`` header. Webhooks
owned by another organization are reported as not found.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from hookrelay.exceptions import NotFoundError
from hookrelay.models import (
    ProbeResult,
    RelayEventType,
    WebhookConfig,
    WebhookCreate,
    WebhookProvider,
    WebhookUpdate,
)
from hookrelay.registry import sanitize_for_response
from hookrelay.service import RelayService

from .schemas import (
    MAX_DELIVERY_LIMIT,
    DeliveryListResponse,
    EventCatalogResponse,
    EventInfo,
    HealthResponse,
    SecretRotatedResponse,
    UrlProbeRequest,
    WebhookCreatedResponse,
    WebhookDetailResponse,
    WebhookListResponse,
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

router = APIRouter()

# Service instance (set by app lifespan)
_service: RelayService | None = None


def set_service(service: RelayService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> RelayService:
    """Dependency to get the RelayService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


async def get_organization_id(
    x_organization_id: Annotated[str, Header(min_length=1)],
) -> str:
    """Dependency to read the caller's organization from the request headers."""
    return x_organization_id


ServiceDep = Annotated[RelayService, Depends(get_service)]
OrgDep = Annotated[str, Depends(get_organization_id)]


async def _owned_webhook(
    service: RelayService,
    webhook_id: str,
    organization_id: str,
) -> WebhookConfig:
    """Fetch a webhook, hiding webhooks of other organizations behind a 404."""
    webhook = await service.registry.get(webhook_id)
    if webhook.organization_id != organization_id:
        raise NotFoundError("webhook", webhook_id)
    return webhook


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health."""
    storage_connected = _service is not None
    return HealthResponse(
        status="healthy" if storage_connected else "unhealthy",
        version=API_VERSION,
        storage_connected=storage_connected,
    )


@router.get("/webhooks/events", response_model=EventCatalogResponse, tags=["webhooks"])
async def list_event_types() -> EventCatalogResponse:
    """List the events webhooks can subscribe to."""
    return EventCatalogResponse(
        events=[EventInfo(event=e, label=e.label) for e in RelayEventType],
        providers=list(WebhookProvider),
    )


@router.get("/webhooks", response_model=WebhookListResponse, tags=["webhooks"])
async def list_webhooks(
    service: ServiceDep,
    organization_id: OrgDep,
    enabled: bool | None = None,
) -> WebhookListResponse:
    """List the organization's webhooks without their secrets."""
    webhooks = await service.registry.list(organization_id, enabled=enabled)
    return WebhookListResponse(
        webhooks=[sanitize_for_response(w) for w in webhooks],
        total=len(webhooks),
    )


@router.post(
    "/webhooks",
    response_model=WebhookCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["webhooks"],
)
async def create_webhook(
    request: WebhookCreate,
    service: ServiceDep,
    organization_id: OrgDep,
) -> WebhookCreatedResponse:
    """Register a webhook.

    The response carries the full signing secret. It is not retrievable
    afterwards; use rotate-secret to issue a new one.
    """
    webhook = await service.registry.create(organization_id, request)
    return WebhookCreatedResponse(webhook=sanitize_for_response(webhook), secret=webhook.secret)


@router.post("/webhooks/test", response_model=ProbeResult, tags=["webhooks"])
async def send_url_test_event(
    request: UrlProbeRequest,
    service: ServiceDep,
    organization_id: OrgDep,
) -> ProbeResult:
    """Send a signed test event to a URL before saving a webhook for it."""
    return await service.send_test_to_url(request.url, organization_id)


@router.get("/webhooks/{webhook_id}", response_model=WebhookDetailResponse, tags=["webhooks"])
async def get_webhook(
    webhook_id: str,
    service: ServiceDep,
    organization_id: OrgDep,
    include_deliveries: bool = False,
    delivery_limit: Annotated[int, Query(ge=1, le=MAX_DELIVERY_LIMIT)] = 10,
) -> WebhookDetailResponse:
    """Get one webhook, optionally with its most recent deliveries."""
    webhook = await _owned_webhook(service, webhook_id, organization_id)
    deliveries = None
    if include_deliveries:
        deliveries = await service.list_deliveries(webhook_id, limit=delivery_limit)
    return WebhookDetailResponse(webhook=sanitize_for_response(webhook), deliveries=deliveries)


@router.patch("/webhooks/{webhook_id}", response_model=WebhookDetailResponse, tags=["webhooks"])
async def update_webhook(
    webhook_id: str,
    request: WebhookUpdate,
    service: ServiceDep,
    organization_id: OrgDep,
) -> WebhookDetailResponse:
    """Update the supplied fields of a webhook. The secret cannot be changed here."""
    await _owned_webhook(service, webhook_id, organization_id)
    webhook = await service.registry.update(webhook_id, request)
    return WebhookDetailResponse(webhook=sanitize_for_response(webhook))


@router.delete(
    "/webhooks/{webhook_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["webhooks"],
)
async def delete_webhook(
    webhook_id: str,
    service: ServiceDep,
    organization_id: OrgDep,
) -> None:
    """Delete a webhook. Its delivery history is kept."""
    await _owned_webhook(service, webhook_id, organization_id)
    await service.registry.delete(webhook_id)


@router.post("/webhooks/{webhook_id}/test", response_model=ProbeResult, tags=["webhooks"])
async def send_webhook_test_event(
    webhook_id: str,
    service: ServiceDep,
    organization_id: OrgDep,
) -> ProbeResult:
    """Send a test event to a saved webhook through the normal delivery path."""
    await _owned_webhook(service, webhook_id, organization_id)
    return await service.send_test_event(webhook_id)


@router.post(
    "/webhooks/{webhook_id}/rotate-secret",
    response_model=SecretRotatedResponse,
    tags=["webhooks"],
)
async def rotate_webhook_secret(
    webhook_id: str,
    service: ServiceDep,
    organization_id: OrgDep,
) -> SecretRotatedResponse:
    """Issue a new signing secret. The old one keeps verifying during the grace window."""
    await _owned_webhook(service, webhook_id, organization_id)
    webhook = await service.registry.rotate_secret(webhook_id)
    logger.info("Rotated secret for webhook %s", webhook_id)
    return SecretRotatedResponse(
        webhook=sanitize_for_response(webhook),
        secret=webhook.secret,
        previous_secret_expires_at=webhook.previous_secret_expires_at,
    )


@router.get(
    "/webhooks/{webhook_id}/deliveries",
    response_model=DeliveryListResponse,
    tags=["webhooks"],
)
async def list_webhook_deliveries(
    webhook_id: str,
    service: ServiceDep,
    organization_id: OrgDep,
    limit: Annotated[int, Query(ge=1, le=MAX_DELIVERY_LIMIT)] = 50,
) -> DeliveryListResponse:
    """List delivery attempts for a webhook, newest first.

    History outlives the webhook, so a deleted webhook's attempts stay
    readable by the organization that owned them.
    """
    webhook = await service.storage.get_webhook(webhook_id)
    if webhook is not None and webhook.organization_id != organization_id:
        raise NotFoundError("webhook", webhook_id)
    deliveries = [
        delivery
        for delivery in await service.list_deliveries(webhook_id, limit=limit)
        if delivery.organization_id == organization_id
    ]
    if webhook is None and not deliveries:
        raise NotFoundError("webhook", webhook_id)
    return DeliveryListResponse(deliveries=deliveries, total=len(deliveries))
