"""
AuthorizationClient tests

The client talks to a remote authorization endpoint and must fail closed.
"""

from unittest.mock import MagicMock

import pytest
import requests

from flask_drive_folder_auth import AuthorizationClient

URL = "https://auth.example.com/authorize"


def make_client(payload=None, error=None):
    response = MagicMock()
    response.json.return_value = payload
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return AuthorizationClient(URL, timeout=3, session=session), session, response


def test_sends_every_email_as_user_parameter():
    client, session, _ = make_client({"authorized": True})

    assert client.is_authorized(["a@x.com", "b@x.com"]) is True
    session.get.assert_called_once_with(URL, params={"user": ["a@x.com", "b@x.com"]}, timeout=3)


def test_single_string_email():
    client, session, _ = make_client({"authorized": False})

    assert client.is_authorized("a@x.com") is False
    assert session.get.call_args.kwargs["params"] == {"user": ["a@x.com"]}


def test_no_emails_makes_no_request():
    client, session, _ = make_client({"authorized": True})

    assert client.is_authorized([]) is False
    assert client.is_authorized(["", None]) is False
    session.get.assert_not_called()


@pytest.mark.parametrize("error", [
    requests.ConnectionError("refused"),
    requests.Timeout("slow"),
])
def test_transport_errors_fail_closed(error):
    client, _, _ = make_client(error=error)
    assert client.is_authorized(["a@x.com"]) is False


def test_http_error_fails_closed():
    client, _, response = make_client({"authorized": True})
    response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

    assert client.is_authorized(["a@x.com"]) is False


def test_invalid_json_fails_closed():
    client, _, response = make_client()
    response.json.side_effect = ValueError("not json")

    assert client.is_authorized(["a@x.com"]) is False


@pytest.mark.parametrize("payload", [{}, {"ok": True}, ["authorized"], {"authorized": "true"}, {"authorized": 1}])
def test_unexpected_payload_fails_closed(payload):
    client, _, _ = make_client(payload)
    assert client.is_authorized(["a@x.com"]) is False


def test_round_trip_through_flask_endpoint(client):
    flask_client = client

    class FlaskSession:
        def get(self, url, params, timeout):
            return _FlaskResponse(flask_client.get(url, query_string=params))

    class _FlaskResponse:
        def __init__(self, response):
            self.response = response

        def raise_for_status(self):
            assert self.response.status_code == 200

        def json(self):
            return self.response.get_json()

    remote = AuthorizationClient("/authorize", session=FlaskSession())

    assert remote.is_authorized(["carol@gmail.com", "bobjones@gmail.com"]) is True
    assert remote.is_authorized(["carol@gmail.com"]) is False
