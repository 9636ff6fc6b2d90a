"""Webhooks feature package.

Tenants register subscriptions; business code records events with
``record_event``; the ``DeliveryWorker`` sends signed deliveries with retries.
"""

from .client import WebhookClient, WebhookDeliveryResult
from .events import (
    ALL_EVENT_TYPES,
    CompanyEvents,
    LicenseEvents,
    MembershipEvents,
    PaymentEvents,
    ProductEvents,
    generate_event_id,
    get_event_category,
    is_known_event_type,
)
from .recorder import EventRecorder, record_event
from .repository import (
    DeliveryRepository,
    SubscriptionRepository,
    get_delivery_repository,
    get_subscription_repository,
)
from .service import SubscriptionService
from .signing import build_webhook_body, sign_payload, verify_signature
from .worker import DeliveryWorker, WorkerRunStats

__all__ = [
    "ALL_EVENT_TYPES",
    # Event types and utilities
    "CompanyEvents",
    "DeliveryRepository",
    "DeliveryWorker",
    "EventRecorder",
    "LicenseEvents",
    "MembershipEvents",
    "PaymentEvents",
    "ProductEvents",
    "SubscriptionRepository",
    "SubscriptionService",
    "WebhookClient",
    "WebhookDeliveryResult",
    "WorkerRunStats",
    "build_webhook_body",
    "generate_event_id",
    "get_delivery_repository",
    "get_event_category",
    "get_subscription_repository",
    "is_known_event_type",
    "record_event",
    "sign_payload",
    "verify_signature",
]
