import json

import pytest

from groups_join_audit.config import Config

from .helpers import CLIENT_CONFIG


@pytest.fixture
def client_config():
    return json.loads(json.dumps(CLIENT_CONFIG))


@pytest.fixture
def key_file(tmp_path, client_config):
    path = tmp_path / "key.json"
    path.write_text(json.dumps(client_config), encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path, key_file):
    return Config(
        customer_id="C0123abc",
        key_path=str(key_file),
        token_path=str(tmp_path / "token.json"),
    )
