"""HookRelay: signed outbound webhooks you can audit.

Relays internal events to external HTTP endpoints (Zapier, Make or any
custom receiver), signs every payload with the subscriber's own secret,
retries failures with exponential backoff and records every attempt.

Quick Start:
    from hookrelay.models import WebhookCreate
    from hookrelay.service import RelayService

    async with RelayService.create() as relay:
        webhook = await relay.registry.create(
            "org_1",
            WebhookCreate(
                name="Zapier",
                url="https://hooks.zapier.com/hooks/catch/1/abc",
                events=["task.created"],
            ),
        )
        summary = await relay.relay_event("org_1", "task.created", {"task_id": "t_1"})

Receivers verify deliveries with hookrelay.signing.verify_payload().
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    NotFoundError,
    PersistenceError,
    RelayError,
    ValidationError,
)

# Logging
from .logging import configure_logging, get_logger, log_context

# Models
from .models import (
    AuditEntry,
    ProbeResult,
    RelayDelivery,
    RelayEventType,
    RelayPayload,
    RelaySummary,
    WebhookConfig,
    WebhookCreate,
    WebhookProvider,
    WebhookUpdate,
)

# Signing
from .signing import sign, verify, verify_payload

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "RelayError",
    "ValidationError",
    "NotFoundError",
    "PersistenceError",
    "ConfigurationError",
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    # Models
    "AuditEntry",
    "ProbeResult",
    "RelayDelivery",
    "RelayEventType",
    "RelayPayload",
    "RelaySummary",
    "WebhookConfig",
    "WebhookCreate",
    "WebhookProvider",
    "WebhookUpdate",
    # Signing
    "sign",
    "verify",
    "verify_payload",
]
