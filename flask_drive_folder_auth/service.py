"""
Authorization endpoint for Flask applications.

Exposes a single GET endpoint that answers whether a user, given by one or
more email addresses, may access the application:

    GET /authorize?user=alice@gmail.com
    GET /authorize?user[]=alice@gmail.com&user[]=alice@example.com

    {"authorized": true}

The endpoint itself is unauthenticated; restrict who can reach it at the
network or deployment layer.
"""

from flask import current_app, jsonify, request

from .authorization import AuthorizationEvaluator
from .client import AuthorizationClient
from .providers import DriveFolderProvider

PROVIDER_EXTENSION = 'drive_folder_provider'


def get_provider():
    """
    Return the provider used for folder and group lookups.

    An object registered as app.extensions['drive_folder_provider'] takes
    precedence; otherwise a DriveFolderProvider is built from the configured
    credentials.
    """
    provider = current_app.extensions.get(PROVIDER_EXTENSION)
    if provider is not None:
        return provider

    config = current_app.extensions['flask_drive_folder_auth']
    return DriveFolderProvider(
        config.get_drive_credentials(),
        directory_credentials=config.get_directory_credentials(),
        timeout=config.get_provider_timeout()
    )


def get_evaluator():
    """
    Build an AuthorizationEvaluator from the app configuration.

    Raises:
        ValueError: If required configuration is missing
    """
    config = current_app.extensions['flask_drive_folder_auth']
    return AuthorizationEvaluator(
        get_provider(),
        config.get_folder_id(),
        group_domain=config.get_group_domain(),
        dot_insensitive_domain=config.get_dot_insensitive_domain(),
        group_fetch_workers=config.get_group_fetch_workers(),
    )


def get_authorization_client():
    """Build an AuthorizationClient for the configured remote endpoint."""
    config = current_app.extensions['flask_drive_folder_auth']
    return AuthorizationClient(
        config.get_authorization_service_url(),
        timeout=config.get_provider_timeout()
    )


def get_candidate_emails(args):
    """
    Collect candidate emails from query arguments.

    Every value of both ``user`` and ``user[]`` is used, so clients may send
    one address or several either way.
    """
    emails = args.getlist('user') + args.getlist('user[]')
    return [email for email in emails if email]


def check_authorization(candidate_emails):
    """
    Check a user's addresses, failing closed on any error.

    Calls the remote endpoint when AUTHORIZATION_SERVICE_URL is configured,
    otherwise evaluates the folder allow-list in-process.

    Args:
        candidate_emails: Single email (string) or list of emails for one user

    Returns:
        bool: True if authorized, False otherwise (including on errors)
    """
    try:
        if current_app.config.get('AUTHORIZATION_SERVICE_URL'):
            return get_authorization_client().is_authorized(candidate_emails)
        return get_evaluator().is_authorized(candidate_emails)
    except Exception as e:
        current_app.logger.error(f"Authorization check failed, denying access: {type(e).__name__}: {e}")
        return False


def setup_authorization_routes(app):
    """
    Set up the authorization endpoint for the Flask app.

    The URL comes from AUTHORIZATION_URL_RULE (default /authorize).

    Args:
        app: Flask application instance
    """
    url_rule = app.config.get('AUTHORIZATION_URL_RULE') or '/authorize'

    @app.route(url_rule, methods=['GET'])
    def authorize():
        """Answer whether the users in the query are authorized."""
        emails = get_candidate_emails(request.args)

        try:
            authorized = get_evaluator().is_authorized(emails)
        except Exception as e:
            current_app.logger.error(f"Authorization check failed, denying access: {type(e).__name__}: {e}")
            authorized = False

        return jsonify({'authorized': authorized})
