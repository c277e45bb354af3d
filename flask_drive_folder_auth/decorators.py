"""
Flask decorator for protecting routes with the Drive folder allow-list.
"""

from functools import wraps

from flask import abort, current_app, request, session

from .service import check_authorization


def get_session_emails():
    """
    Return the email addresses of the signed-in user.

    The login flow stores them in the session as ``user_emails`` (list) or
    ``user_email`` (single address).

    Returns:
        list: Possibly empty list of emails
    """
    emails = session.get('user_emails')
    if emails is None:
        email = session.get('user_email')
        emails = [email] if email else []
    elif isinstance(emails, str):
        emails = [emails]
    return [email for email in emails if email]


def require_authorized(f):
    """
    Decorator that requires the signed-in user to be on the folder allow-list.

    Returns 401 if no user email is in the session, and 403 if none of the
    user's addresses is authorized. The allow-list is checked on every
    request; nothing is cached.

    Usage:
        @app.route('/library')
        @require_authorized
        def library():
            return "Shared with you"
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        emails = get_session_emails()
        if not emails:
            abort(401)

        if not check_authorization(emails):
            current_app.logger.warning(f"User {emails} attempted to access {request.path} but is not on the folder allow-list")
            abort(403)

        return f(*args, **kwargs)
    return decorated_function
