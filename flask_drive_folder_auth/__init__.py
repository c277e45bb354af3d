"""
Google Drive Folder Access Gate for Flask

This module provides Flask utilities for:
1. Deciding whether a user may access an application, based on who a Google
   Drive folder is shared with (including members of shared Google Groups)
2. Serving that decision from a small authorization endpoint
3. Protecting routes based on that decision

Address matching is case-insensitive, and dot-insensitive for gmail.com
addresses. Groups on the folder are expanded one level deep.

Configuration follows the same approach everywhere:
- Local Development: values and service account key file from environment variables
- Cloud Run: values and service account key JSON from Secret Manager
"""

from .authorization import (
    AuthorizationEvaluator,
    AuthorizationResult,
    expand_groups,
    normalize_email,
    normalize_emails,
)
from .client import AuthorizationClient
from .config import Config
from .decorators import require_authorized
from .providers import DriveFolderProvider, ProviderError, ProviderUnavailable
from .service import check_authorization, setup_authorization_routes

__version__ = "0.1.0"
__all__ = [
    "AuthorizationClient",
    "AuthorizationEvaluator",
    "AuthorizationResult",
    "Config",
    "DriveFolderProvider",
    "ProviderError",
    "ProviderUnavailable",
    "check_authorization",
    "expand_groups",
    "normalize_email",
    "normalize_emails",
    "require_authorized",
    "setup_authorization_routes",
]
