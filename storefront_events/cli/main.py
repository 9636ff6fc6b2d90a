"""Main CLI entry point for storefront-events management commands."""

import click

from storefront_events import __version__
from storefront_events.cli.commands import database, webhooks, worker
from storefront_events.infra.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="storefront-events")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Storefront Events CLI - tenant-scoped webhook management.

    \b
    Command Groups:
      db         Database connectivity and migrations
      webhooks   Subscriptions, delivery history and event emission
      worker     Webhook delivery worker

    \b
    Quick Start:
      storefront-events db upgrade
      storefront-events webhooks create -t biz_1 -u https://example.com/hook -e payment.succeeded
      storefront-events webhooks emit -t biz_1 -e payment.succeeded --data '{"amount": 4999}'
      storefront-events worker run
    """
    ctx.ensure_object(dict)


cli.add_command(database.db)
cli.add_command(webhooks.webhooks)
cli.add_command(worker.worker)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
