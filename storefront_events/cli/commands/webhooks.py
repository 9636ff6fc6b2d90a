"""Webhook management CLI commands.

Every command acts on behalf of one tenant (``--tenant``) and runs inside
its tenant scope, so it can only see and change that tenant's data.

Example:bash
    storefront-events webhooks create --tenant biz_1 -u https://example.com/hook -e payment.succeeded
    storefront-events webhooks emit --tenant biz_1 -e payment.succeeded --data '{"amount": 4999}'
    storefront-events worker run --once
"""

import json
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

import click
from pydantic import ValidationError

from storefront_events.cli.utils import (
    coro,
    error,
    header,
    info,
    key_value,
    section,
    success,
    warning,
)
from storefront_events.core.database import NotFoundError
from storefront_events.core.exceptions import AppException
from storefront_events.features.webhooks.schemas import (
    DeliveryRead,
    DeliveryStatus,
    SubscriptionCreated,
    SubscriptionRead,
)
from storefront_events.features.webhooks.service import SubscriptionService

tenant_option = click.option(
    "--tenant",
    "-t",
    required=True,
    envvar="STOREFRONT_TENANT",
    help="Tenant to act as (or STOREFRONT_TENANT)",
)


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        error(f"Invalid {label} ID format: {value}")
        sys.exit(1)


@asynccontextmanager
async def _tenant_service(tenant: str) -> AsyncIterator[SubscriptionService]:
    """Session plus tenant scope; commits on success, exits on domain errors."""
    from storefront_events.core.tenancy import tenant_scope
    from storefront_events.infra.database import get_async_session

    async with get_async_session() as session:
        with tenant_scope(tenant, identified_by="cli"):
            try:
                yield SubscriptionService(session)
                await session.commit()
            except NotFoundError as e:
                await session.rollback()
                error(str(e))
                sys.exit(1)
            except AppException as e:
                await session.rollback()
                error(e.detail)
                sys.exit(1)


def _print_subscription(subscription: SubscriptionRead) -> None:
    status = click.style("Active", fg="green") if subscription.is_active else click.style("Inactive", fg="red")
    key_value("ID", subscription.id)
    key_value("URL", subscription.url)
    key_value("Status", status)
    key_value("Events", subscription.events)
    key_value("Secret", subscription.secret)
    key_value("API version", subscription.api_version)
    if subscription.description:
        key_value("Description", subscription.description)
    key_value("Created", subscription.created_at)
    if subscription.deactivated_at:
        key_value("Deactivated", subscription.deactivated_at)


def _print_secret(subscription: SubscriptionCreated) -> None:
    section("Signing Secret")
    click.echo(f"  {subscription.secret}")
    warning(subscription.warning)


def _print_delivery(delivery: DeliveryRead) -> None:
    colors = {DeliveryStatus.DELIVERED: "green", DeliveryStatus.FAILED: "red", DeliveryStatus.PENDING: "yellow"}
    key_value("ID", delivery.id)
    key_value("Event", f"{delivery.event_type} ({delivery.event_id})")
    key_value("Subscription", delivery.subscription_id)
    key_value("Status", click.style(delivery.status.value, fg=colors[delivery.status]))
    key_value("Attempts", f"{delivery.attempt_count}/{delivery.max_attempts}")
    key_value("Response", delivery.response_status_code)
    if delivery.next_retry_at:
        key_value("Next retry", delivery.next_retry_at)
    if delivery.error_message:
        key_value("Error", delivery.error_message)


@click.group(name="webhooks")
def webhooks() -> None:
    """Webhook subscription and delivery commands."""


@webhooks.command(name="list")
@tenant_option
@click.option("--active/--inactive", default=None, help="Filter by active status")
@click.option("--limit", default=50, type=int, help="Maximum subscriptions to display (default: 50)")
@click.option("--offset", default=0, type=int, help="Number of subscriptions to skip")
@coro
async def list_subscriptions(tenant: str, active: bool | None, limit: int, offset: int) -> None:
    """List the tenant's subscriptions."""
    header(f"Webhook Subscriptions ({tenant})")

    async with _tenant_service(tenant) as service:
        subscriptions, total = await service.list_subscriptions(is_active=active, limit=limit, offset=offset)

    if not subscriptions:
        info("No subscriptions found")
        return

    for subscription in subscriptions:
        click.echo()
        _print_subscription(subscription)
    click.echo()
    success(f"Showing {len(subscriptions)}/{total} subscriptions")


@webhooks.command(name="show")
@tenant_option
@click.argument("subscription_id")
@coro
async def show_subscription(tenant: str, subscription_id: str) -> None:
    """Show one subscription. The secret is always masked."""
    subscription_uuid = _parse_uuid(subscription_id, "subscription")

    async with _tenant_service(tenant) as service:
        subscription = await service.get_subscription(subscription_uuid)

    header(f"Subscription {subscription.id}")
    _print_subscription(subscription)


@webhooks.command(name="create")
@tenant_option
@click.option("--url", "-u", required=True, help="Target URL")
@click.option(
    "--event",
    "-e",
    "events",
    multiple=True,
    required=True,
    help="Event types to subscribe to (can specify multiple)",
)
@click.option("--description", "-d", help="Subscription description")
@click.option("--api-version", default="v1", show_default=True, help="Payload API version")
@coro
async def create_subscription(
    tenant: str,
    url: str,
    events: tuple[str, ...],
    description: str | None,
    api_version: str,
) -> None:
    """Create a subscription and print its signing secret once.

    Examples:
    \b
      storefront-events webhooks create -t biz_1 -u https://example.com/hook -e payment.succeeded -e payment.failed
    """
    from storefront_events.features.webhooks.schemas import SubscriptionCreate

    try:
        payload = SubscriptionCreate(
            url=url, events=list(events), description=description, api_version=api_version
        )
    except ValidationError as e:
        error(f"Invalid subscription: {e}")
        sys.exit(1)

    async with _tenant_service(tenant) as service:
        created = await service.create_subscription(payload)

    header("Subscription Created")
    _print_subscription(created)
    _print_secret(created)


@webhooks.command(name="update")
@tenant_option
@click.argument("subscription_id")
@click.option("--url", "-u", help="New target URL")
@click.option("--event", "-e", "events", multiple=True, help="Replace event types (can specify multiple)")
@click.option("--description", "-d", help="New description")
@click.option("--api-version", help="New payload API version")
@click.option("--active/--inactive", default=None, help="Activate or deactivate")
@coro
async def update_subscription(
    tenant: str,
    subscription_id: str,
    url: str | None,
    events: tuple[str, ...],
    description: str | None,
    api_version: str | None,
    active: bool | None,
) -> None:
    """Update a subscription. The secret cannot be changed here."""
    from storefront_events.features.webhooks.schemas import SubscriptionUpdate

    subscription_uuid = _parse_uuid(subscription_id, "subscription")
    try:
        payload = SubscriptionUpdate(
            url=url,
            events=list(events) or None,
            description=description,
            api_version=api_version,
            is_active=active,
        )
    except ValidationError as e:
        error(f"Invalid update: {e}")
        sys.exit(1)

    async with _tenant_service(tenant) as service:
        updated = await service.update_subscription(subscription_uuid, payload)

    header("Subscription Updated")
    _print_subscription(updated)


@webhooks.command(name="deactivate")
@tenant_option
@click.argument("subscription_id")
@coro
async def deactivate_subscription(tenant: str, subscription_id: str) -> None:
    """Stop a subscription from receiving events, keeping its history."""
    subscription_uuid = _parse_uuid(subscription_id, "subscription")

    async with _tenant_service(tenant) as service:
        subscription = await service.deactivate_subscription(subscription_uuid)

    success(f"Subscription {subscription.id} deactivated")


@webhooks.command(name="rotate-secret")
@tenant_option
@click.argument("subscription_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@coro
async def rotate_secret(tenant: str, subscription_id: str, yes: bool) -> None:
    """Replace the signing secret. Receivers must be updated immediately."""
    subscription_uuid = _parse_uuid(subscription_id, "subscription")
    if not yes:
        click.confirm("Deliveries will be signed with the new secret from now on. Continue?", abort=True)

    async with _tenant_service(tenant) as service:
        rotated = await service.rotate_secret(subscription_uuid)

    success(f"Secret rotated for subscription {rotated.id}")
    _print_secret(rotated)


@webhooks.command(name="delete")
@tenant_option
@click.argument("subscription_id")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
@coro
async def delete_subscription(tenant: str, subscription_id: str, yes: bool) -> None:
    """Delete a subscription and its delivery history.

    Prefer ``deactivate`` to keep the history.
    """
    subscription_uuid = _parse_uuid(subscription_id, "subscription")
    if not yes:
        click.confirm("This permanently deletes the subscription and its deliveries. Continue?", abort=True)

    async with _tenant_service(tenant) as service:
        deleted = await service.delete_subscription(subscription_uuid)

    if not deleted:
        error(f"Subscription not found: {subscription_id}")
        sys.exit(1)
    success(f"Subscription {subscription_id} deleted")


@webhooks.command(name="deliveries")
@tenant_option
@click.option("--subscription", "subscription_id", help="Only deliveries of this subscription")
@click.option(
    "--status",
    type=click.Choice([s.value for s in DeliveryStatus]),
    help="Filter by delivery status",
)
@click.option("--limit", default=20, type=int, help="Maximum deliveries to display (default: 20)")
@click.option("--offset", default=0, type=int, help="Number of deliveries to skip")
@coro
async def list_deliveries(
    tenant: str,
    subscription_id: str | None,
    status: str | None,
    limit: int,
    offset: int,
) -> None:
    """Show delivery history, newest first."""
    subscription_uuid = _parse_uuid(subscription_id, "subscription") if subscription_id else None

    async with _tenant_service(tenant) as service:
        deliveries, total = await service.list_deliveries(
            subscription_id=subscription_uuid,
            status=DeliveryStatus(status) if status else None,
            limit=limit,
            offset=offset,
        )

    header(f"Webhook Deliveries ({tenant})")
    if not deliveries:
        info("No deliveries found")
        return

    for delivery in deliveries:
        click.echo()
        _print_delivery(delivery)
    click.echo()
    success(f"Showing {len(deliveries)}/{total} deliveries")


@webhooks.command(name="retry")
@tenant_option
@click.argument("delivery_id")
@coro
async def retry_delivery(tenant: str, delivery_id: str) -> None:
    """Re-queue a failed delivery with a fresh attempt budget."""
    delivery_uuid = _parse_uuid(delivery_id, "delivery")

    async with _tenant_service(tenant) as service:
        delivery = await service.retry_delivery(delivery_uuid)

    success(f"Delivery {delivery.id} queued for retry")


@webhooks.command(name="emit")
@tenant_option
@click.option("--event", "-e", "event_type", required=True, help="Event type, e.g. payment.succeeded")
@click.option("--data", "data", default="{}", help="Event payload as a JSON object")
@click.option("--event-id", help="Idempotency key (generated when omitted)")
@coro
async def emit_event(tenant: str, event_type: str, data: str, event_id: str | None) -> None:
    """Record an event for the tenant's matching subscriptions."""
    from storefront_events.features.webhooks.recorder import record_event

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        error(f"--data is not valid JSON: {e}")
        sys.exit(1)
    if not isinstance(payload, dict):
        error("--data must be a JSON object")
        sys.exit(1)

    result = await record_event(tenant, event_type, payload, event_id)

    key_value("Event ID", result.event_id)
    key_value("Matched", result.matched)
    key_value("Created", result.created)
    key_value("Duplicates", result.duplicates)
    if result.matched:
        success(f"Event recorded for {result.created} subscription(s)")
    else:
        info("No active subscriptions listen to this event type")
