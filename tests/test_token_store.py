import json
from datetime import datetime, timedelta

import pytest

from groups_join_audit.auth import SCOPES
from groups_join_audit.token_store import TokenStoreError, load_token, save_token

from .helpers import make_credentials, utcnow

EXPIRY = datetime(2030, 1, 1, 12, 0)


def test_save_then_load_returns_same_token(tmp_path, capsys):
    path = tmp_path / "token.json"

    save_token(str(path), make_credentials())
    loaded = load_token(str(path), SCOPES)

    assert loaded.token == "ya29.access"
    assert loaded.refresh_token == "1//refresh"
    assert loaded.expiry == EXPIRY
    assert loaded.client_id == "test-client-id.apps.googleusercontent.com"
    assert list(loaded.scopes) == SCOPES
    assert f"Saving credential file to: {path}" in capsys.readouterr().out


def test_saved_file_is_authorized_user_json(tmp_path):
    path = tmp_path / "token.json"
    save_token(str(path), make_credentials())

    data = json.loads(path.read_text())

    assert data["token"] == "ya29.access"
    assert data["refresh_token"] == "1//refresh"
    assert data["expiry"].startswith("2030-01-01T12:00:00")


def test_save_overwrites_previous_token(tmp_path):
    path = tmp_path / "token.json"
    save_token(str(path), make_credentials(token="old"))
    save_token(str(path), make_credentials(token="new"))

    assert load_token(str(path)).token == "new"


def test_save_failure_raises(tmp_path):
    with pytest.raises(TokenStoreError, match="Unable to cache oauth token"):
        save_token(str(tmp_path / "missing-dir" / "token.json"), make_credentials())


def test_load_missing_file_returns_none(tmp_path):
    assert load_token(str(tmp_path / "token.json")) is None


@pytest.mark.parametrize("content", [
    "not json",
    "[]",
    '{"token": "ya29.access"}',
    json.dumps({
        "token": "ya29.access",
        "refresh_token": "1//refresh",
        "client_id": "id",
        "client_secret": "secret",
        "expiry": "yesterday",
    }),
])
def test_load_unusable_content_returns_none(tmp_path, content):
    path = tmp_path / "token.json"
    path.write_text(content)

    assert load_token(str(path)) is None


def test_token_with_future_expiry_is_valid():
    assert make_credentials(expiry=utcnow() + timedelta(hours=1)).valid


def test_token_with_past_expiry_is_not_valid():
    assert not make_credentials(expiry=utcnow() - timedelta(minutes=1)).valid


def test_token_without_expiry_is_valid():
    assert make_credentials(expiry=None).valid


def test_token_without_access_token_is_not_valid():
    assert not make_credentials(token=None).valid
