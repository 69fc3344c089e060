"""Minimal Microsoft Graph REST client used by the Excel provider."""

import logging
from typing import Any, Dict, Optional

import requests

from tutasks.config.config import GRAPH_API_BASE_URL, HTTP_TIMEOUT_SECONDS

from .errors import RemoteAPIError

logger = logging.getLogger(__name__)


class GraphAPIError(RemoteAPIError):
    """A Graph request failed. status_code is 0 when no response was received."""

    def __init__(self, message: str, status_code: int, code: Optional[str] = None):
        super().__init__(message, status_code=status_code)
        self.code = code


class GraphClient:
    """Authenticated session against the Graph API.

    Holds a bearer token for one signed-in user; token refresh is the caller's job.
    """

    def __init__(self, access_token: str, base_url: str = GRAPH_API_BASE_URL,
                 timeout: float = HTTP_TIMEOUT_SECONDS, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {access_token}",
            'Content-Type': 'application/json',
        })

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(path)
        logger.debug(f"Graph {method} {url}")
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Graph {method} {path} failed before a response: {e}")
            raise GraphAPIError(f"Graph request failed: {e}", status_code=0) from e

        if not response.ok:
            code, message = None, response.text
            try:
                error = response.json().get('error', {})
                code = error.get('code')
                message = error.get('message', message)
            except ValueError:
                pass
            logger.debug(f"Graph {method} {path} returned {response.status_code}: {code} {message}")
            raise GraphAPIError(f"Graph API error {response.status_code}: {message}", status_code=response.status_code, code=code)

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def get(self, path: str) -> Dict[str, Any]:
        return self.request('GET', path)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request('POST', path, json=json)

    def patch(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request('PATCH', path, json=json)
