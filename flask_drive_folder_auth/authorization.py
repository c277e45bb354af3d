"""
Folder allow-list evaluation.

A user is authorized when any of their addresses, in canonical form, is on
the folder's sharing list after group addresses on that list have been
replaced by their members.

Canonical form: lower-cased, split at the last "@", and with every "." removed
from the local part when the domain is the dot-insensitive mail domain
(gmail.com by default). Plus-addressing ("user+tag@gmail.com") is NOT folded
into the base address.

Groups are expanded one level only. A group that lists another group keeps
that inner address as-is; recursive groups are not supported.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_DOT_INSENSITIVE_DOMAIN, DEFAULT_GROUP_DOMAIN
from .providers import ProviderError

logger = logging.getLogger(__name__)

REASON_MATCHED = 'matched'
REASON_NO_MATCH = 'no_match'
REASON_NO_CANDIDATES = 'no_candidates'
REASON_PROVIDER_ERROR = 'provider_error'


@dataclass(frozen=True)
class AuthorizationResult:
    """Outcome of one authorization check."""
    authorized: bool
    reason: str


def split_address(email: str) -> Optional[Tuple[str, str]]:
    """
    Split an address into (local_part, domain) at the last "@".

    Returns:
        tuple, or None if the address has no "@"
    """
    local_part, separator, domain = email.rpartition('@')
    if not separator:
        return None
    return local_part, domain


def is_group_reference(email: str, group_domain: str = DEFAULT_GROUP_DOMAIN) -> bool:
    """True if the address's domain is exactly the group domain (case-insensitive)."""
    if not isinstance(email, str):
        return False
    parts = split_address(email)
    return parts is not None and parts[1].lower() == group_domain.lower()


def normalize_email(email: str, dot_insensitive_domain: str = DEFAULT_DOT_INSENSITIVE_DOMAIN) -> Optional[str]:
    """
    Return the canonical form of an address.

    Args:
        email: Raw address
        dot_insensitive_domain: Domain whose local parts ignore dots

    Returns:
        str, or None when the address has no "@" (it can never match)
    """
    if not isinstance(email, str):
        return None

    parts = split_address(email.lower())
    if parts is None:
        return None

    local_part, domain = parts
    if domain == dot_insensitive_domain.lower():
        local_part = local_part.replace('.', '')

    return f"{local_part}@{domain}"


def normalize_emails(emails: Iterable[str], dot_insensitive_domain: str = DEFAULT_DOT_INSENSITIVE_DOMAIN) -> List[str]:
    """Canonical forms of ``emails`` in order, with malformed addresses dropped."""
    output = []
    for email in emails:
        canonical = normalize_email(email, dot_insensitive_domain)
        if canonical is None:
            logger.debug(f"Ignoring malformed address: {email!r}")
            continue
        output.append(canonical)
    return output


def _members_or_empty(fetch_group_members: Callable[[str], Iterable[str]], group_address: str) -> List[str]:
    try:
        return list(fetch_group_members(group_address))
    except ProviderError as e:
        logger.error(f"Could not expand group {group_address}, treating it as empty: {e}")
        return []
    except Exception as e:
        logger.error(f"Unexpected error expanding group {group_address}, treating it as empty: {type(e).__name__}: {e}")
        return []


def expand_groups(
    emails: Iterable[str],
    fetch_group_members: Callable[[str], Iterable[str]],
    group_domain: str = DEFAULT_GROUP_DOMAIN,
    max_workers: int = 1,
) -> List[str]:
    """
    Replace each group address with that group's members, one level deep.

    Each distinct group (compared case-insensitively) is fetched once. A group
    whose members cannot be fetched contributes nothing. Members are spliced
    in where the group address stood; everything else keeps its position.

    Args:
        emails: Raw allow-list
        fetch_group_members: Callable returning the member emails of a group
        group_domain: Domain that marks an address as a group
        max_workers: Fetch up to this many groups at once (1 = sequential)

    Returns:
        list of addresses
    """
    emails = list(emails)

    groups: Dict[str, str] = {}
    for email in emails:
        if is_group_reference(email, group_domain):
            groups.setdefault(email.lower(), email)

    fetch = partial(_members_or_empty, fetch_group_members)
    if max_workers > 1 and len(groups) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(groups))) as executor:
            members_by_group = dict(zip(groups, executor.map(fetch, groups.values())))
    else:
        members_by_group = {key: fetch(address) for key, address in groups.items()}

    output = []
    for email in emails:
        if is_group_reference(email, group_domain):
            output.extend(members_by_group[email.lower()])
        else:
            output.append(email)
    return output


class AuthorizationEvaluator:
    """
    Decides whether a user may access the application.

    Holds no state between checks: the folder's sharing list is fetched
    fresh every time.

    Args:
        provider: Object with fetch_folder_grantees(folder_id) and
                  fetch_group_members(group_address)
        folder_id: Folder whose sharing list is the allow-list
        group_domain: Domain that marks an address as a group
        dot_insensitive_domain: Domain whose local parts ignore dots
        group_fetch_workers: Concurrent group fetches per check
    """

    def __init__(
        self,
        provider,
        folder_id: str,
        group_domain: str = DEFAULT_GROUP_DOMAIN,
        dot_insensitive_domain: str = DEFAULT_DOT_INSENSITIVE_DOMAIN,
        group_fetch_workers: int = 1,
    ):
        self.provider = provider
        self.folder_id = folder_id
        self.group_domain = group_domain.lower()
        self.dot_insensitive_domain = dot_insensitive_domain.lower()
        self.group_fetch_workers = group_fetch_workers

    def allowed_emails(self) -> set:
        """
        Canonical allow-list for the folder.

        Raises:
            ProviderError: If the folder's sharing list cannot be read
        """
        grantees = self.provider.fetch_folder_grantees(self.folder_id)
        expanded = expand_groups(
            grantees,
            self.provider.fetch_group_members,
            group_domain=self.group_domain,
            max_workers=self.group_fetch_workers,
        )
        return set(normalize_emails(expanded, self.dot_insensitive_domain))

    def check(self, candidate_emails) -> AuthorizationResult:
        """
        Check a user's addresses against the folder allow-list.

        Never raises: an unreadable folder, or any other error while reading
        it, denies access.

        Args:
            candidate_emails: Single email (string) or list of emails for one user

        Returns:
            AuthorizationResult
        """
        if isinstance(candidate_emails, str):
            candidate_emails = [candidate_emails]
        candidates = list(candidate_emails or [])

        if not candidates:
            logger.info("No candidate emails supplied, denying access")
            return AuthorizationResult(authorized=False, reason=REASON_NO_CANDIDATES)

        try:
            allowed = self.allowed_emails()
        except ProviderError as e:
            logger.error(f"Could not read sharing list of folder {self.folder_id}, denying access: {e}")
            return AuthorizationResult(authorized=False, reason=REASON_PROVIDER_ERROR)
        except Exception as e:
            logger.error(f"Unexpected error reading folder {self.folder_id}, denying access: {type(e).__name__}: {e}")
            return AuthorizationResult(authorized=False, reason=REASON_PROVIDER_ERROR)

        for email in candidates:
            canonical = normalize_email(email, self.dot_insensitive_domain)
            if canonical is not None and canonical in allowed:
                logger.info(f"User {email} is authorized for folder {self.folder_id}")
                return AuthorizationResult(authorized=True, reason=REASON_MATCHED)

        logger.info(f"None of {candidates} are authorized for folder {self.folder_id}")
        return AuthorizationResult(authorized=False, reason=REASON_NO_MATCH)

    def is_authorized(self, candidate_emails) -> bool:
        """True if any of the user's addresses is on the folder allow-list."""
        return self.check(candidate_emails).authorized
