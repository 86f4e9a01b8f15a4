"""Flask surface of the poller."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from errors import TransportError
from messages import VerificationResult
from settings import PollConfig, Settings
from verification_code_poller import PollOutcome, PollState
from verification_server import create_app


@pytest.fixture
def poller():
    return MagicMock()


@pytest.fixture
def client(poller):
    settings = Settings(account_id="default-account", timezone="UTC+08:00")
    app = create_app(settings, poller_factory=lambda s: poller)
    app.config["TESTING"] = True
    return app.test_client()


def test_health_reports_timezone(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "timezone": "UTC+08:00"}


def test_found_code_returns_200(client, poller) -> None:
    result = VerificationResult(code="482913", time=1_700_000_000, subject="code is 482913", sender="OpenAI")
    poller.poll.return_value = PollOutcome(PollState.FOUND, 2, result)

    response = client.get("/verification-code?accountId=42")

    assert response.status_code == 200
    assert response.get_json()["code"] == "482913"
    poller.poll.assert_called_once_with("42")


def test_exhausted_returns_404(client, poller) -> None:
    poller.poll.return_value = PollOutcome(PollState.EXHAUSTED, 5)

    response = client.get("/verification-code")

    assert response.status_code == 404
    assert response.get_json()["success"] is False
    poller.poll.assert_called_once_with("default-account")


def test_mailbox_errors_return_502(client, poller) -> None:
    poller.poll.side_effect = TransportError("HTTP 503", status_code=503)

    response = client.get("/verification-code?accountId=1")

    assert response.status_code == 502
    assert response.get_json() == {"success": False, "error": "HTTP 503"}


def test_account_id_is_required() -> None:
    app = create_app(Settings(), poller_factory=lambda s: MagicMock())

    response = app.test_client().get("/verification-code")

    assert response.status_code == 400


def test_missing_session_token_returns_401(monkeypatch) -> None:
    monkeypatch.delenv("MAIL_SESSION_TOKEN", raising=False)
    app = create_app(Settings(account_id="42", poll=PollConfig(max_attempts=1)))

    response = app.test_client().get("/verification-code")

    assert response.status_code == 401
    assert response.get_json()["success"] is False
    assert "session token" in response.get_json()["error"]
