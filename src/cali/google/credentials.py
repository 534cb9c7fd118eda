"""Pick Calendar API credentials from the cali configuration."""

import logging

from cali.config import CaliConfig
from cali.google.exceptions import AuthorizationRequired, CredentialsNotFoundError
from cali.google.oauth import GoogleOAuth
from cali.google.service_account import GoogleServiceAccount

logger = logging.getLogger(__name__)


def get_credentials(config: CaliConfig, scopes: list[str] | None = None):
    """Return google-auth credentials for the configured auth mode.

    A service account wins over OAuth when both are configured, so unattended
    runs never block on a browser.

    Raises:
        CredentialsNotFoundError: If neither mode is configured.
        AuthorizationRequired: If OAuth is configured but not yet authorized.
    """
    if config.has_service_account:
        logger.info("Using service account authentication (automated)")
        account = GoogleServiceAccount(
            key_path=config.service_account_path,
            scopes=scopes,
            key_info=config.service_account,
        )
        if config.subject:
            account = account.with_subject(config.subject)
        return account.credentials

    if config.has_oauth_client:
        logger.info("Using OAuth user authentication (interactive)")
        client = config.oauth_client or {}
        auth = GoogleOAuth(
            scopes=scopes,
            client_id=client.get("client_id"),
            client_secret=client.get("client_secret"),
            token_path=config.oauth_token_path,
            credentials_path=config.credentials_path,
        )
        if not auth.is_authorized():
            raise AuthorizationRequired(auth.get_authorization_url())
        return auth.get_credentials()

    raise CredentialsNotFoundError(
        f"{config.service_account_path} or {config.credentials_path} "
        "(need a service account key or an OAuth client)"
    )
