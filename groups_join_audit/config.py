"""Configuration management for groups_join_audit.

Handles the OAuth client secret file and Secret Manager integration.
The client secret is normally read from a local JSON file (``--key``). When a
secret id is configured instead, the same JSON document is fetched from
Google Cloud Secret Manager.
"""

import json
import logging
import os
from typing import Optional

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import secretmanager

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_KEY_PATH = 'key.json'
DEFAULT_TOKEN_PATH = 'token.json'
DEFAULT_CALLBACK_HOST = 'localhost'
DEFAULT_CALLBACK_PORT = 8080
DEFAULT_PAGE_SIZE = 100

# Client types accepted in a client secret document
CLIENT_TYPES = ('installed', 'web')


class Config:
    """Settings for one audit run."""

    def __init__(
        self,
        customer_id: str = '',
        key_path: str = DEFAULT_KEY_PATH,
        token_path: str = DEFAULT_TOKEN_PATH,
        key_secret: Optional[str] = None,
        project_id: Optional[str] = None,
        callback_host: str = DEFAULT_CALLBACK_HOST,
        callback_port: int = DEFAULT_CALLBACK_PORT,
        callback_timeout: Optional[float] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        """
        Initialize configuration.

        Args:
            customer_id: Google Workspace customer ID whose groups are audited
            key_path: Path to the OAuth client secret JSON file
            token_path: Path of the cached token file
            key_secret: Secret Manager secret holding the client secret JSON
                (optional, takes precedence over key_path)
            project_id: GCP project of key_secret (optional, uses ADC if not provided)
            callback_host: Loopback host the authorization callback listens on
            callback_port: Port the authorization callback listens on
            callback_timeout: Seconds to wait for the browser callback, None waits forever
            page_size: Groups requested per list call
        """
        self.customer_id = customer_id
        self.key_path = key_path
        self.token_path = token_path
        self.key_secret = key_secret
        self.project_id = project_id
        self.callback_host = callback_host
        self.callback_port = callback_port
        self.callback_timeout = callback_timeout
        self.page_size = page_size
        self._client_config: Optional[dict] = None

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.callback_host}:{self.callback_port}/"

    def validate(self):
        """
        Check the settings that must be present before anything else runs.

        Raises:
            ConfigError: If the customer ID is empty
        """
        if not self.customer_id:
            raise ConfigError("customer_id must be provided")

    def get_client_config(self) -> dict:
        """
        Get the OAuth client secret document from the key file or Secret Manager.

        The document must contain an ``installed`` or ``web`` section with at
        least ``client_id`` and ``client_secret``.

        Returns:
            Dictionary with the client secret document (parsed JSON)

        Raises:
            ConfigError: If the document cannot be read or is malformed
        """
        if self._client_config is None:
            if self.key_secret:
                logger.info(f"Loading client secret from Secret Manager: {self.key_secret}")
                raw = self.get_secret(self.key_secret, self.project_id)
                source = f"secret {self.key_secret}"
            else:
                logger.info(f"Loading client secret from file: {self.key_path}")
                try:
                    with open(self.key_path, 'r', encoding='utf-8') as f:
                        raw = f.read()
                except OSError as e:
                    raise ConfigError(f"Unable to read client secret file: {e}") from e
                source = self.key_path

            try:
                client_config = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Unable to parse client secret {source}: {e}") from e

            # Fails early on documents without a usable client section
            _check_client_section(client_config)
            self._client_config = client_config

        return self._client_config

    def get_secret(self, secret_id: str, project_id: Optional[str] = None) -> str:
        """
        Retrieve a secret from Google Cloud Secret Manager.

        Uses Application Default Credentials (ADC) to automatically determine
        the project if not explicitly provided.

        Args:
            secret_id: The ID of the secret to retrieve
            project_id: GCP project ID (optional, uses ADC if not provided)

        Returns:
            The secret value as a string

        Raises:
            ConfigError: If the project cannot be determined or the secret cannot be read
        """
        if not project_id:
            try:
                credentials, project_id = google.auth.default()
            except DefaultCredentialsError as e:
                raise ConfigError(f"Failed to get default credentials: {e}") from e

            if not project_id and hasattr(credentials, 'quota_project_id'):
                project_id = credentials.quota_project_id

            if not project_id:
                project_id = os.getenv('GOOGLE_CLOUD_PROJECT') or os.getenv('GCP_PROJECT') or os.getenv('GCLOUD_PROJECT')

            if not project_id:
                raise ConfigError(
                    "Cannot determine GCP project ID. Either:\n"
                    "  - Run 'gcloud config set project YOUR_PROJECT_ID'\n"
                    "  - Set GOOGLE_CLOUD_PROJECT environment variable\n"
                    "  - Pass --project"
                )

        try:
            with secretmanager.SecretManagerServiceClient() as client:
                name = f"projects/{project_id}/secrets/{secret_id}/versions/latest"
                response = client.access_secret_version(request={"name": name})
                secret_value = response.payload.data.decode('UTF-8')
        except Exception as e:
            raise ConfigError(f"Unable to read secret {secret_id}: {e}") from e

        return secret_value


def _check_client_section(client_config):
    if not isinstance(client_config, dict):
        raise ConfigError("Client secret must be a JSON object")

    for client_type in CLIENT_TYPES:
        section = client_config.get(client_type)
        if isinstance(section, dict):
            break
    else:
        raise ConfigError(
            "Unable to parse client secret file to config: "
            "expected an 'installed' or 'web' section"
        )

    missing = [field for field in ('client_id', 'client_secret') if not section.get(field)]
    if missing:
        raise ConfigError(
            f"Unable to parse client secret file to config: missing {', '.join(missing)}"
        )
