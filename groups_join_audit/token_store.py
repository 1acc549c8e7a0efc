"""
Local cache of the OAuth token.

The authorized-user credentials are kept in a JSON file (``token.json`` in
the working directory by default) so later runs can skip the browser
authorization.
"""

import logging
from typing import Optional, Sequence

from google.oauth2.credentials import Credentials

from .exceptions import AuditError

logger = logging.getLogger(__name__)


class TokenStoreError(AuditError):
    """Raised when the token cache cannot be written."""
    pass


def load_token(path: str, scopes: Optional[Sequence[str]] = None) -> Optional[Credentials]:
    """
    Retrieve cached credentials from a local file.

    Any read or parse failure means there is no usable token.

    Args:
        path: Path of the token file
        scopes: Scopes the credentials are used with (optional)

    Returns:
        Credentials: The cached credentials, or None if the file is missing or unreadable
    """
    try:
        credentials = Credentials.from_authorized_user_file(path, scopes)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.debug(f"No usable token in {path}: {type(e).__name__}: {e}")
        return None

    logger.debug(f"Loaded token from {path} (expiry: {credentials.expiry})")
    return credentials


def save_token(path: str, credentials: Credentials):
    """
    Save credentials to a file path, replacing any previous content.

    Args:
        path: Path of the token file
        credentials: Credentials to persist

    Raises:
        TokenStoreError: If the file cannot be written
    """
    print(f"Saving credential file to: {path}")
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(credentials.to_json())
    except OSError as e:
        raise TokenStoreError(f"Unable to cache oauth token: {e}") from e
