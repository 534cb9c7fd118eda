"""Google OAuth and service account authentication for the Calendar API."""

from cali.google.credentials import get_credentials
from cali.google.exceptions import (
    AuthorizationRequired,
    CredentialsNotFoundError,
    GoogleAuthError,
    ScopeMismatchError,
    TokenError,
)
from cali.google.oauth import GoogleOAuth
from cali.google.service_account import GoogleServiceAccount

__all__ = [
    "GoogleOAuth",
    "GoogleServiceAccount",
    "get_credentials",
    "GoogleAuthError",
    "CredentialsNotFoundError",
    "TokenError",
    "ScopeMismatchError",
    "AuthorizationRequired",
]
