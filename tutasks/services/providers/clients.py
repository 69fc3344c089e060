"""Builds the authenticated client handles the providers are constructed with.

The OAuth sign-in and refresh flow lives outside this package; it hands us an
access token. For Google, a configured service account can stand in when no
user token is given (useful for scripts and shared task sheets).
"""

import json
import logging
from typing import Optional

import gspread
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials

from tutasks.config.config import SCOPES
from tutasks.config.config_loader import get_config

from .errors import ProviderConfigurationError
from .graph import GraphClient

logger = logging.getLogger(__name__)


def authorize_google(access_token: Optional[str] = None) -> gspread.Client:
    """Returns a gspread client for a user access token, or for the configured service account.

    Raises:
        ProviderConfigurationError: If neither a token nor usable service account credentials exist.
    """
    if access_token:
        creds = Credentials(token=access_token, scopes=SCOPES)
        return gspread.authorize(creds)

    config = get_config()
    if not config.service_account_json_string:
        logger.error("No Google access token supplied and no service account configured.")
        raise ProviderConfigurationError("Not authenticated: missing Google access token")

    try:
        service_account_info = json.loads(config.service_account_json_string)
    except json.JSONDecodeError as e:
        logger.critical(f"Failed to parse service account JSON from config: {e}")
        raise ProviderConfigurationError("Invalid service account JSON in configuration") from e

    try:
        creds = service_account.Credentials.from_service_account_info(service_account_info, scopes=SCOPES)
    except (ValueError, KeyError) as e:
        logger.critical(f"Service account JSON is missing required fields: {e}")
        raise ProviderConfigurationError("Incomplete service account credentials in configuration") from e

    logger.info("Authorized gspread client with the configured service account.")
    return gspread.authorize(creds)


def authorize_graph(access_token: Optional[str]) -> GraphClient:
    """Returns a Graph client for a Microsoft access token."""
    if not access_token or not access_token.strip():
        logger.error("No Microsoft access token supplied.")
        raise ProviderConfigurationError("Not authenticated: missing Microsoft access token")

    config = get_config()
    return GraphClient(access_token.strip(), base_url=config.graph_api_base_url, timeout=config.http_timeout)
