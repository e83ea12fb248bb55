# src/flight_aggregator/services/amadeus_client.py

import logging
import os
import time
from typing import Any, Callable, Dict, Optional

import requests


logger = logging.getLogger(__name__)

BASE_URLS = {
    "test": "https://test.api.amadeus.com",
    "production": "https://api.amadeus.com",
}
TOKEN_PATH = "/v1/security/oauth2/token"
TOKEN_REFRESH_MARGIN_SECONDS = 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 1800


class AmadeusClient:
    """
    Amadeus Self-Service REST client.

    Holds the OAuth2 client-credentials token for the adapter that owns it;
    callers only see `get()` and `ensure_token()`.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        env: Optional[str] = None,
        timeout_seconds: float = 10,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client_id = (client_id or os.getenv("AMADEUS_CLIENT_ID", "")).strip()
        self.client_secret = (client_secret or os.getenv("AMADEUS_CLIENT_SECRET", "")).strip()
        if not self.client_id or not self.client_secret:
            raise ValueError(
                "Missing Amadeus credentials. Set AMADEUS_CLIENT_ID and AMADEUS_CLIENT_SECRET."
            )

        self.env = (env or os.getenv("AMADEUS_ENV", "test")).strip().lower()
        # anything but "test" talks to production
        self.base_url = BASE_URLS["test"] if self.env == "test" else BASE_URLS["production"]
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self._clock = clock

        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def _token_fresh(self) -> bool:
        if not self._token:
            return False
        return self._clock() < self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS

    def _refresh_token(self) -> str:
        resp = self.session.post(
            f"{self.base_url}{TOKEN_PATH}",
            data={"grant_type": "client_credentials"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout_seconds,
        )
        if resp.status_code != 200:
            # body only; credentials travel in the auth header
            raise requests.HTTPError(
                f"Amadeus token request failed: {resp.status_code} {resp.text}",
                response=resp,
            )

        payload = resp.json()
        lifetime = int(payload.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        self._token = payload["access_token"]
        self._token_expires_at = self._clock() + lifetime
        logger.debug("Amadeus token refreshed, valid for %ss", lifetime)
        return self._token

    def ensure_token(self) -> str:
        if self._token_fresh():
            return self._token
        return self._refresh_token()

    def _authorized_get(self, url: str, params: Dict[str, Any], token: str) -> requests.Response:
        return self.session.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout_seconds,
        )

    def get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = self._authorized_get(url, params, self.ensure_token())

        if resp.status_code == 401:
            logger.info("Amadeus rejected the cached token, refreshing once")
            resp = self._authorized_get(url, params, self._refresh_token())

        resp.raise_for_status()
        return resp.json()
