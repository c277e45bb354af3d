"""
Flask CLI commands for checking a deployment by hand.

    flask drive-auth check someone@gmail.com
    flask drive-auth grantees
"""

import json

import click
from flask import current_app
from flask.cli import AppGroup
from google.auth.exceptions import GoogleAuthError

from .authorization import is_group_reference
from .providers import ProviderError
from .service import get_evaluator, get_provider

drive_auth_cli = AppGroup('drive-auth', help='Inspect the Drive folder allow-list.')


@drive_auth_cli.command('check')
@click.argument('emails', nargs=-1, required=True)
def check_command(emails):
    """Check whether a user with EMAILS is authorized. Exits 1 if not."""
    try:
        result = get_evaluator().check(list(emails))
    except (ValueError, GoogleAuthError) as e:
        raise click.ClickException(str(e))

    click.echo(json.dumps({'authorized': result.authorized, 'reason': result.reason}))
    if not result.authorized:
        raise SystemExit(1)


@drive_auth_cli.command('grantees')
def grantees_command():
    """List the folder's grantees, with group members indented below each group."""
    config = current_app.extensions['flask_drive_folder_auth']
    try:
        provider = get_provider()
        folder_id = config.get_folder_id()
        grantees = provider.fetch_folder_grantees(folder_id)
    except (ProviderError, ValueError, GoogleAuthError) as e:
        raise click.ClickException(str(e))

    group_domain = config.get_group_domain()
    for email in grantees:
        click.echo(email)
        if not is_group_reference(email, group_domain):
            continue
        try:
            members = provider.fetch_group_members(email)
        except ProviderError as e:
            click.echo(f"    (unreadable: {e})")
            continue
        for member in members:
            click.echo(f"    {member}")
