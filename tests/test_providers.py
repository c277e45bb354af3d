"""
Provider adapter tests

Exercises DriveFolderProvider against mocked googleapiclient services:
pagination, record validation and error translation.
"""

from unittest.mock import ANY, MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from flask_drive_folder_auth.providers import (
    DriveFolderProvider,
    Grantee,
    GroupMember,
    ProviderError,
    ProviderUnavailable,
    parse_grantee,
    parse_group_member,
)


def http_error(status):
    return HttpError(httplib2.Response({"status": status}), b'{"error": {"message": "nope"}}')


def drive_service(*pages):
    service = MagicMock()
    service.permissions.return_value.list.return_value.execute.side_effect = list(pages)
    return service


def directory_service(*pages):
    service = MagicMock()
    service.members.return_value.list.return_value.execute.side_effect = list(pages)
    return service


@pytest.fixture
def provider(monkeypatch):
    provider = DriveFolderProvider(
        drive_credentials=MagicMock(name="drive"),
        directory_credentials=MagicMock(name="directory"),
        timeout=5,
    )
    provider.services = {}
    provider.built_with = {}

    def fake_build(name, version, credentials):
        provider.built_with[name] = credentials
        return provider.services[name]

    monkeypatch.setattr(provider, "_build_service", fake_build)
    return provider


def test_parse_grantee_keeps_users_and_groups():
    assert parse_grantee({"emailAddress": "a@x.com", "role": "owner", "type": "user"}) == Grantee("a@x.com", "owner", "user")
    assert parse_grantee({"emailAddress": "g@googlegroups.com", "role": "reader", "type": "group"}).kind == "group"


@pytest.mark.parametrize("permission", [
    {"role": "reader", "type": "anyone"},
    {"role": "reader", "type": "domain", "domain": "example.com"},
    {"emailAddress": "a@x.com", "role": "reader", "type": "domain"},
    {"emailAddress": None, "role": "reader", "type": "user"},
    "not-a-dict",
])
def test_parse_grantee_drops_entries_without_email(permission):
    assert parse_grantee(permission) is None


def test_parse_group_member():
    assert parse_group_member({"email": "b@x.com", "role": "MEMBER", "type": "USER"}) == GroupMember("b@x.com", "MEMBER", "USER")
    assert parse_group_member({"id": "C123", "role": "MEMBER", "type": "CUSTOMER"}) is None
    assert parse_group_member(None) is None


def test_list_folder_grantees_follows_pages(provider):
    service = drive_service(
        {
            "permissions": [
                {"emailAddress": "owner@x.com", "role": "owner", "type": "user"},
                {"role": "reader", "type": "anyone"},
            ],
            "nextPageToken": "page-2",
        },
        {"permissions": [{"emailAddress": "team@googlegroups.com", "role": "writer", "type": "group"}]},
    )
    provider.services["drive"] = service

    grantees = provider.list_folder_grantees("folder-1")

    assert grantees == [
        Grantee("owner@x.com", "owner", "user"),
        Grantee("team@googlegroups.com", "writer", "group"),
    ]
    list_calls = service.permissions.return_value.list.call_args_list
    assert [c.kwargs["pageToken"] for c in list_calls] == [None, "page-2"]
    assert all(c.kwargs["fileId"] == "folder-1" and c.kwargs["supportsAllDrives"] for c in list_calls)


def test_fetch_folder_grantees_returns_emails_with_duplicates(provider):
    provider.services["drive"] = drive_service({
        "permissions": [
            {"emailAddress": "a@x.com", "role": "owner", "type": "user"},
            {"emailAddress": "a@x.com", "role": "reader", "type": "user"},
        ],
    })
    assert provider.fetch_folder_grantees("folder-1") == ["a@x.com", "a@x.com"]


def test_empty_folder(provider):
    provider.services["drive"] = drive_service({})
    assert provider.fetch_folder_grantees("folder-1") == []


def test_list_group_members_follows_pages(provider):
    service = directory_service(
        {"members": [{"email": "b@x.com", "role": "MEMBER", "type": "USER"}], "nextPageToken": "t"},
        {"members": [{"email": "inner@googlegroups.com", "role": "MEMBER", "type": "GROUP"}]},
    )
    provider.services["admin"] = service

    assert provider.fetch_group_members("team@googlegroups.com") == ["b@x.com", "inner@googlegroups.com"]
    first_call = service.members.return_value.list.call_args_list[0]
    assert first_call.kwargs["groupKey"] == "team@googlegroups.com"


@pytest.mark.parametrize("status", [403, 404, 500])
def test_http_errors_become_provider_errors(provider, status):
    provider.services["drive"] = drive_service(http_error(status))

    with pytest.raises(ProviderError) as excinfo:
        provider.fetch_folder_grantees("folder-1")

    assert excinfo.value.status == status
    assert not isinstance(excinfo.value, ProviderUnavailable)


def test_timeout_becomes_provider_unavailable(provider):
    provider.services["admin"] = directory_service(TimeoutError("timed out"))

    with pytest.raises(ProviderUnavailable):
        provider.fetch_group_members("team@googlegroups.com")


def test_transport_error_becomes_provider_unavailable(provider):
    provider.services["drive"] = drive_service(httplib2.ServerNotFoundError("no route"))

    with pytest.raises(ProviderUnavailable):
        provider.fetch_folder_grantees("folder-1")


def test_build_service_uses_timeout_bound_transport():
    credentials = MagicMock()
    provider = DriveFolderProvider(credentials, timeout=7)

    with patch("flask_drive_folder_auth.providers.build") as build:
        provider._build_service("drive", "v3", credentials)

    build.assert_called_once_with("drive", "v3", http=ANY, cache_discovery=False)
    authorized_http = build.call_args.kwargs["http"]
    assert authorized_http.credentials is credentials
    assert authorized_http.http.timeout == 7


def test_each_api_uses_its_own_credentials(provider):
    provider.services["drive"] = drive_service({})
    provider.services["admin"] = directory_service({})

    provider.fetch_folder_grantees("folder-1")
    provider.fetch_group_members("team@example.com")

    assert provider.built_with["drive"] is provider.drive_credentials
    assert provider.built_with["admin"] is provider.directory_credentials
    assert provider.drive_credentials is not provider.directory_credentials


def test_directory_credentials_default_to_drive_credentials():
    credentials = MagicMock()
    provider = DriveFolderProvider(credentials)

    assert provider.directory_credentials is credentials
