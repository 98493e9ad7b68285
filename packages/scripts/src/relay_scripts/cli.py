#!/usr/bin/env python3
"""
Operator CLI for the chat relay actions.
Supports both CLI flags and interactive prompts.
"""

import json
import sys
from typing import Optional

import click
from InquirerPy import inquirer
from InquirerPy.base.control import Choice

from relay.adapter.out.invoker import LocalActionInvoker
from relay.channels.facebook import post as facebook_post
from relay.channels.slack import post as slack_post
from relay.deploy import create_database
from relay.dispatch import FacebookDispatcher, SlackDispatcher
from relay.exceptions import ProvisioningError, RelayError
from relay.models import DispatcherConfig
from relay_common.environments import get_action_name
from relay_common.logging import setup_logging

CHANNELS = {
    "slack": (SlackDispatcher, slack_post.main),
    "facebook": (FacebookDispatcher, facebook_post.main),
}


@click.group()
@click.version_option(version="1.0.0")
@click.option("--log-level", default="WARNING", help="Log level for the relay actions")
def cli(log_level: str):
    """Operate chat relay actions from the command line."""
    setup_logging(level=log_level, format_type="text")


def get_cloudant_credentials_interactive() -> tuple[str, str]:
    username = inquirer.text(
        message="Cloudant account:",
        validate=lambda x: len(x) >= 1,
        invalid_message="Account cannot be empty",
    ).execute()
    password = inquirer.secret(message="Cloudant password:").execute()
    return username, password


@cli.command("provision-db")
@click.option("--username", "-u", help="Cloudant account name")
@click.option("--password", "-p", help="Cloudant password")
@click.option("--db-name", "-d", help="Database to create")
@click.option("--max-attempts", "-m", type=int, help="Attempts while Cloudant is unavailable")
def provision_db(
    username: Optional[str],
    password: Optional[str],
    db_name: Optional[str],
    max_attempts: Optional[int],
):
    """Create a tenant database, retrying while Cloudant is unavailable."""
    if not username or not password:
        username, password = get_cloudant_credentials_interactive()
    if not db_name:
        db_name = inquirer.text(
            message="Database name:",
            validate=lambda x: len(x) >= 1,
            invalid_message="Database name cannot be empty",
        ).execute()

    click.echo(f"⏳ Creating database {db_name} on {username}.cloudant.com...")
    params = {"cloudant": {"username": username, "password": password}, "db_name": db_name}

    try:
        result = create_database.main(params, max_attempts=max_attempts)
    except ProvisioningError as e:
        click.echo(f"❌ Provisioning failed: {json.dumps(e.to_dict())}", err=True)
        sys.exit(1)

    click.echo(f"✅ {json.dumps(result)}")


@cli.command("post-sequence")
@click.argument("reply_file", type=click.File("r"))
@click.option("--channel", "-c", type=click.Choice(sorted(CHANNELS)), help="Channel to post to")
@click.option("--action-name", "-a", help="Fully qualified '/namespace/package/action' name")
@click.option("--tagged", is_flag=True, help="Report one ordered list of tagged outcomes")
def post_sequence(reply_file, channel: Optional[str], action_name: Optional[str], tagged: bool):
    """Deliver the fragments of a reply JSON file to a channel, in order."""
    try:
        payload = json.load(reply_file)
    except json.JSONDecodeError as e:
        click.echo(f"❌ Reply file is not valid JSON: {e}", err=True)
        sys.exit(1)

    if not channel:
        channel = inquirer.select(
            message="Channel:",
            choices=[Choice("slack", "Slack"), Choice("facebook", "Facebook Messenger")],
            default="slack",
        ).execute()

    action_name = action_name or get_action_name()
    if not action_name:
        action_name = inquirer.text(
            message="Action name (/namespace/package/action):",
            validate=lambda x: len(x.split("/")) >= 3,
            invalid_message="Expected /namespace/package/action",
        ).execute()

    try:
        config = DispatcherConfig.from_action_name(action_name)
    except RelayError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    dispatcher_class, post_action = CHANNELS[channel]
    invoker = LocalActionInvoker({config.post_sequence_name: post_action})
    result = dispatcher_class(invoker, config).dispatch(payload)

    click.echo(json.dumps(result.to_dict(tagged=tagged), indent=2))
    if result.has_failures:
        click.echo(f"❌ {len(result.failed_posts)} post(s) failed", err=True)
        sys.exit(1)
    click.echo(f"✅ Posted {len(result.successful_posts)} message(s) to {channel}")


@cli.command("post-sequence-name")
@click.argument("action_name")
def post_sequence_name(action_name: str):
    """Print the post sequence an action delivers to."""
    try:
        click.echo(DispatcherConfig.from_action_name(action_name).post_sequence_name)
    except RelayError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
