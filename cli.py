"""
CLI interface for the lunch order automation.

Provides commands to inspect today's pending orders and to run the
automation against the ordering website.

    lunch-order batches
    lunch-order run --time 1730            # dry run, summary to the log
    lunch-order run --actual --post        # place orders, summary to Slack
"""

import logging
import sys

import click

from config import AutomationConfig, Config, config_to_dict, ordering_credentials
from core.exceptions import ConfigurationError
from core.playwright_surface import open_browser_surface
from core.site_profile import get_profile
from logging_config import get_logger, setup_logging
from modules.notification import LogNotifier
from services.automation_service import create_collaborators
from services.runner import AutomationRunner


logger = get_logger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Log at DEBUG level")
@click.pass_context
def main(ctx, debug):
    """
    lunch-order - Group lunch ordering automation.

    Places the day's pending group orders on the ordering website.
    """
    setup_logging(log_level=logging.DEBUG if debug else logging.INFO)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config_to_dict(Config)


@main.command("batches")
@click.pass_context
def batches(ctx):
    """Show today's pending orders grouped by restaurant."""
    collaborators = create_collaborators(ctx.obj["config"])
    pending = collaborators["order_source"].get_pending_orders_grouped_by_restaurant()

    if not pending:
        click.echo("No pending orders.")
        return

    for batch in pending:
        click.echo(batch.restaurant)
        for participant in batch.participants:
            items = ", ".join(item.describe() for item in participant.items) or "(no items)"
            donor = " [donor]" if participant.is_donor else ""
            click.echo(f"  {participant.identity}{donor}: {items}")


@main.command("run")
@click.option("--time", "order_time", type=int, default=None, help="Delivery time as HHMM (24h)")
@click.option("--actual", is_flag=True, help="Place the orders (default is a dry run)")
@click.option("--post", is_flag=True, help="Post the summary to Slack instead of the log")
@click.option("--headless/--headed", default=None, help="Show or hide the browser window")
@click.pass_context
def run(ctx, order_time, actual, post, headless):
    """Order from every restaurant with pending orders."""
    config = ctx.obj["config"]

    try:
        credentials = ordering_credentials(config)
        automation_config = AutomationConfig.from_config(config, order_time=order_time, dry_run=not actual)
        site = get_profile(config["SITE_PROFILE"])
        collaborators = create_collaborators(config)
        if post and not config.get("SLACK_WEBHOOK_URL"):
            raise ConfigurationError("SLACK_WEBHOOK_URL", "--post needs SLACK_WEBHOOK_URL to be set")
    except (ConfigurationError, ValueError) as e:
        click.echo(f"✗ {getattr(e, 'message', e)}", err=True)
        raise SystemExit(1)

    users = collaborators["users"]
    notifier = collaborators["notifier"] if post else LogNotifier(
        mention=users.mention, base_url=config.get("CONFIRMATION_BASE_URL", "")
    )
    pending = collaborators["order_source"].get_pending_orders_grouped_by_restaurant()

    if automation_config.dry_run:
        click.echo("=" * 50)
        click.echo("=== DRY RUN MODE === (no orders placed)")
        click.echo("=" * 50)

    if not pending:
        click.echo("No pending orders.")
        return

    if headless is None:
        headless = bool(config["HEADLESS"])

    with open_browser_surface(headless=headless, timeout_ms=float(config["SURFACE_TIMEOUT_MS"])) as surface:
        result = AutomationRunner(
            surface,
            automation_config,
            users,
            stats=collaborators["stats"],
            notifier=notifier,
            order_source=collaborators["order_source"],
            site=site,
            credentials=credentials,
        ).run(pending)

    for batch_result in result.results:
        if batch_result.successful:
            click.echo(f"✓ {batch_result.restaurant}: {batch_result.callee_identity} receives the call")
        else:
            click.echo(f"✗ {batch_result.restaurant}: {'; '.join(batch_result.reasons)}")

    # The run is over; exit even if the browser left threads behind
    sys.exit(0)


if __name__ == "__main__":
    main()
