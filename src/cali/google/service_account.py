"""Google Service Account authentication.

Service accounts are used for server-to-server authentication without user
interaction, which is what unattended cali runs (cron jobs, CI) want.
The service account acts as its own identity and can access:
- Calendars explicitly shared with the service account email
- Google Workspace calendars (if domain-wide delegation is configured)

Example:
    >>> auth = GoogleServiceAccount(key_path="service-account.json")
    >>> credentials = auth.credentials
"""

import json
import logging
from pathlib import Path
from typing import Any

from google.oauth2 import service_account

from cali.config import GOOGLE_SERVICE_ACCOUNT
from cali.google.exceptions import CredentialsNotFoundError, GoogleAuthError
from cali.google.oauth import DEFAULT_SCOPES, resolve_scopes

logger = logging.getLogger(__name__)


class GoogleServiceAccount:
    """Google Service Account authentication.

    Uses a service account key (a JSON file, or the same document inlined
    in config.yaml) for server-to-server authentication.

    Note: To write to a personal calendar, the owner must share that
    calendar with the service account email address.
    """

    def __init__(
        self,
        key_path: str | Path | None = None,
        scopes: list[str] | None = None,
        key_info: dict[str, Any] | None = None,
    ):
        """Initialize service account authentication.

        Args:
            key_path: Path to service account JSON key file.
                Defaults to ~/.config/cali/service-account.json.
            scopes: List of scope names (e.g., ["calendar"]) or full URLs.
                   If None, defaults to ["calendar"].
            key_info: Parsed key document; used instead of key_path when given.

        Raises:
            CredentialsNotFoundError: If key file not found.
            GoogleAuthError: If the key is invalid.
        """
        self.key_path = Path(key_path) if key_path else GOOGLE_SERVICE_ACCOUNT
        self.scopes = resolve_scopes(scopes or DEFAULT_SCOPES)

        if key_info is None:
            if not self.key_path.exists():
                raise CredentialsNotFoundError(str(self.key_path))
            try:
                with open(self.key_path) as f:
                    key_info = json.load(f)
            except json.JSONDecodeError as e:
                raise GoogleAuthError(f"Invalid JSON in key file: {e}") from e

        if key_info.get("type") != "service_account":
            raise GoogleAuthError(
                f"Invalid key file: expected type 'service_account', got '{key_info.get('type')}'"
            )

        self.client_email = key_info.get("client_email", "")
        self.project_id = key_info.get("project_id", "")

        try:
            self._credentials = service_account.Credentials.from_service_account_info(
                key_info,
                scopes=self.scopes,
            )
        except (ValueError, KeyError) as e:
            raise GoogleAuthError(f"Invalid service account key: {e}") from e

        logger.info(f"Service account initialized: {self.client_email}")
        logger.info(f"Scopes: {self.scopes}")

    @property
    def credentials(self):
        """Get the service account credentials."""
        return self._credentials

    @property
    def email(self) -> str:
        """Get the service account email address.

        Share your calendars with this email to grant access.
        """
        return self.client_email

    def with_subject(self, subject_email: str) -> "GoogleServiceAccount":
        """Create credentials that impersonate a user (requires domain-wide delegation).

        Args:
            subject_email: Email of the user to impersonate.

        Returns:
            New GoogleServiceAccount instance with delegated credentials.
        """
        delegated_credentials = self._credentials.with_subject(subject_email)

        new_instance = object.__new__(GoogleServiceAccount)
        new_instance.key_path = self.key_path
        new_instance.scopes = self.scopes
        new_instance.client_email = self.client_email
        new_instance.project_id = self.project_id
        new_instance._credentials = delegated_credentials

        logger.info(f"Created delegated credentials for: {subject_email}")
        return new_instance

    def get_info(self) -> dict:
        """Get information about the service account.

        Returns:
            Dictionary with service account details.
        """
        return {
            "type": "service_account",
            "email": self.client_email,
            "project_id": self.project_id,
            "scopes": self.scopes,
            "key_path": str(self.key_path),
        }
