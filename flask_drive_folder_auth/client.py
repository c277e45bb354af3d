"""
Client for a remote authorization endpoint.

Lets a login flow ask a separately deployed authorization service whether a
user may access the application.
"""

import logging

import requests

logger = logging.getLogger(__name__)


class AuthorizationClient:
    """
    Calls ``GET <url>?user=a&user=b`` and reads the ``authorized`` flag.

    Every failure (network, HTTP status, bad JSON, missing flag) is logged
    and reported as not authorized.
    """

    def __init__(self, url, timeout=10, session=None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_authorized(self, candidate_emails) -> bool:
        """
        Ask the endpoint about all of a user's addresses in one request.

        Args:
            candidate_emails: Single email (string) or list of emails for one user

        Returns:
            bool: True only if the endpoint answered {"authorized": true}
        """
        if isinstance(candidate_emails, str):
            candidate_emails = [candidate_emails]
        emails = [email for email in candidate_emails or [] if email]

        if not emails:
            return False

        try:
            response = self.session.get(self.url, params={'user': emails}, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Authorization request to {self.url} failed: {type(e).__name__}: {e}")
            return False

        if not isinstance(payload, dict) or 'authorized' not in payload:
            logger.error(f"Authorization response from {self.url} has no 'authorized' key")
            return False

        return payload['authorized'] is True
