"""
Google Drive folder sharing and Google Group membership lookups.

The folder's sharing list (owners, editors, viewers) is the allow-list; group
addresses on it are resolved through the Admin SDK Directory API.

Two identities are involved:
- Drive calls run as the service account itself, so the folder must be
  shared with the service account's email.
- Directory calls impersonate a Workspace admin through domain-wide
  delegation with scope:
    https://www.googleapis.com/auth/admin.directory.group.member.readonly
  The Directory API only serves groups owned by the Workspace customer;
  consumer @googlegroups.com groups are not readable there.

Responses are validated into Grantee / GroupMember records here so that
nothing past this module sees raw API payloads.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional

import google_auth_httplib2
import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

PERMISSION_FIELDS = 'nextPageToken, permissions(emailAddress, role, type)'
MEMBER_FIELDS = 'nextPageToken, members(email, role, type)'
GRANTEE_KINDS = ('user', 'group')
PAGE_SIZE = 100
MEMBER_PAGE_SIZE = 200


class ProviderError(Exception):
    """Raised when folder grantees or group members cannot be listed.

    Covers permission denial and not-found as well as API failures.
    ``status`` holds the HTTP status when the API answered.
    """

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class ProviderUnavailable(ProviderError):
    """Raised when the API could not be reached or the request timed out."""


@dataclass(frozen=True)
class Grantee:
    """A user or group with direct access to the folder."""
    email: str
    role: str
    kind: str


@dataclass(frozen=True)
class GroupMember:
    """A member entry of a group."""
    email: str
    role: str
    kind: str


def _field(payload, name) -> str:
    value = payload.get(name)
    return value if isinstance(value, str) else ''


def parse_grantee(permission) -> Optional[Grantee]:
    """
    Validate one Drive permission resource.

    Args:
        permission: dict from permissions.list

    Returns:
        Grantee, or None for permissions without an email address
        (domain-wide and "anyone with the link" grants)
    """
    if not isinstance(permission, dict):
        logger.warning(f"Ignoring malformed permission entry: {permission!r}")
        return None

    email = _field(permission, 'emailAddress')
    kind = _field(permission, 'type')
    if not email or kind not in GRANTEE_KINDS:
        logger.debug(f"Skipping {kind or 'unknown'} permission without an email address")
        return None

    return Grantee(email=email, role=_field(permission, 'role'), kind=kind)


def parse_group_member(member) -> Optional[GroupMember]:
    """
    Validate one Directory member resource.

    Returns:
        GroupMember, or None for entries without an email (e.g. CUSTOMER)
    """
    if not isinstance(member, dict):
        logger.warning(f"Ignoring malformed member entry: {member!r}")
        return None

    email = _field(member, 'email')
    if not email:
        logger.debug(f"Skipping {_field(member, 'type') or 'unknown'} member without an email address")
        return None

    return GroupMember(email=email, role=_field(member, 'role'), kind=_field(member, 'type'))


class DriveFolderProvider:
    """
    Lists who a Drive folder is shared with and who belongs to a group.

    Every request builds its own service object (googleapiclient services are
    not thread-safe) over an HTTP transport bounded by ``timeout`` seconds.

    Args:
        drive_credentials: Credentials that can read the folder's permissions
        directory_credentials: Delegated credentials for the Directory API
                               (defaults to drive_credentials)
        timeout: Seconds per request
    """

    def __init__(self, drive_credentials, directory_credentials=None, timeout=30):
        self.drive_credentials = drive_credentials
        self.directory_credentials = directory_credentials or drive_credentials
        self.timeout = timeout

    def _build_service(self, service_name, version, credentials):
        http = google_auth_httplib2.AuthorizedHttp(
            credentials,
            http=httplib2.Http(timeout=self.timeout)
        )
        return build(service_name, version, http=http, cache_discovery=False)

    @contextmanager
    def _translate_errors(self, action):
        try:
            yield
        except HttpError as e:
            raise ProviderError(f"Failed {action}: HTTP {e.resp.status}: {e}", status=e.resp.status) from e
        except (httplib2.HttpLib2Error, OSError) as e:
            # socket timeouts land here as TimeoutError
            raise ProviderUnavailable(f"Failed {action}: {type(e).__name__}: {e}") from e
        except GoogleAuthError as e:
            raise ProviderError(f"Failed {action}: {type(e).__name__}: {e}") from e

    def list_folder_grantees(self, folder_id) -> List[Grantee]:
        """
        List every user and group with owner, editor or viewer access.

        Args:
            folder_id: Drive ID of the shared folder

        Returns:
            list of Grantee records, in API order

        Raises:
            ProviderError: If the folder cannot be read or does not exist
        """
        grantees = []
        with self._translate_errors(f"listing permissions of folder {folder_id}"):
            service = self._build_service('drive', 'v3', self.drive_credentials)
            page_token = None
            while True:
                response = service.permissions().list(
                    fileId=folder_id,
                    fields=PERMISSION_FIELDS,
                    pageSize=PAGE_SIZE,
                    pageToken=page_token,
                    supportsAllDrives=True
                ).execute()

                for permission in response.get('permissions', []):
                    grantee = parse_grantee(permission)
                    if grantee is not None:
                        grantees.append(grantee)

                page_token = response.get('nextPageToken')
                if not page_token:
                    break

        logger.debug(f"Folder {folder_id} has {len(grantees)} grantees")
        return grantees

    def list_group_members(self, group_address) -> List[GroupMember]:
        """
        List the members of a group.

        Nested groups show up as members of kind GROUP and are not expanded.

        Args:
            group_address: Email of the group

        Returns:
            list of GroupMember records

        Raises:
            ProviderError: If the group cannot be read or does not exist
        """
        members = []
        with self._translate_errors(f"listing members of group {group_address}"):
            service = self._build_service('admin', 'directory_v1', self.directory_credentials)
            page_token = None
            while True:
                response = service.members().list(
                    groupKey=group_address,
                    fields=MEMBER_FIELDS,
                    maxResults=MEMBER_PAGE_SIZE,
                    pageToken=page_token
                ).execute()

                for member in response.get('members', []):
                    group_member = parse_group_member(member)
                    if group_member is not None:
                        members.append(group_member)

                page_token = response.get('nextPageToken')
                if not page_token:
                    break

        logger.debug(f"Group {group_address} has {len(members)} members")
        return members

    def fetch_folder_grantees(self, folder_id) -> List[str]:
        """Emails with direct access to the folder. Duplicates are kept."""
        return [grantee.email for grantee in self.list_folder_grantees(folder_id)]

    def fetch_group_members(self, group_address) -> List[str]:
        """Member emails of the group."""
        return [member.email for member in self.list_group_members(group_address)]
