import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError

from groups_join_audit.auth import SCOPES

CLIENT_CONFIG = {
    "installed": {
        "client_id": "test-client-id.apps.googleusercontent.com",
        "client_secret": "test-client-secret",
        "auth_uri": "https://accounts.google.com/o/oauth2/auth",
        "token_uri": "https://oauth2.googleapis.com/token",
        "redirect_uris": ["http://localhost"],
    }
}


def make_http_error(status=403, reason="Forbidden"):
    resp = httplib2.Response({"status": status})
    resp.reason = reason
    content = json.dumps({"error": {"code": status, "message": reason}}).encode()
    return HttpError(resp, content)


def make_service(method, *responses):
    """Fake API client whose ``groups().<method>(...).execute()`` returns responses in order.

    Exceptions in ``responses`` are raised instead of returned.
    """
    service = MagicMock()
    request = MagicMock()
    request.execute.side_effect = list(responses)
    getattr(service.groups.return_value, method).return_value = request
    return service


def make_credentials(**overrides):
    """Authorized-user credentials for the test client."""
    values = dict(
        token="ya29.access",
        refresh_token="1//refresh",
        token_uri="https://oauth2.googleapis.com/token",
        client_id=CLIENT_CONFIG["installed"]["client_id"],
        client_secret=CLIENT_CONFIG["installed"]["client_secret"],
        scopes=SCOPES,
        expiry=datetime(2030, 1, 1, 12, 0),
    )
    values.update(overrides)
    return Credentials(**values)


def utcnow():
    """Naive UTC now, the form google-auth keeps expiry in."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)
