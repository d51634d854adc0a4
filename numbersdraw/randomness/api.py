import os
import logging
from urllib.parse import urljoin
from typing import Any, Optional

import requests
from dotenv import load_dotenv

from ..errors import RandomnessProviderError
from .types import RandomWordsRequest
from .utils import open_session

logger = logging.getLogger(__name__)


class ProviderClient:
    """HTTP client for a verifiable randomness provider.

    Implements :class:`~numbersdraw.randomness.types.RandomnessProvider`. The
    provider answers asynchronously by invoking the fulfillment callback, so
    this client only submits requests and reports their status.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout: int = 45,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        url = base_url or os.getenv("RANDOMNESS_BASE_URL")
        if not url:
            raise ValueError("Environment variable 'RANDOMNESS_BASE_URL' is not set")

        self.base_url = url.rstrip("/")
        self.session = session or open_session(api_key)
        self.timeout = timeout

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        try:
            r = self.session.request(
                method=method.upper(),
                url=url,
                json=json,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as exc:
            logger.error(f"Randomness provider call {method} {path} failed: {exc}")
            raise RandomnessProviderError(f"Randomness provider call failed: {exc}") from exc
        return r.json() if r.content else None

    # -------- API callers --------
    def request_random_words(self, request: RandomWordsRequest) -> str:
        """Submit ``request`` and return the provider's request id."""
        response = self._request("POST", "/api/v1/vrf/requests", json=request.to_payload())
        if not isinstance(response, dict) or response.get("requestId") in (None, ""):
            raise RandomnessProviderError(
                f"Unexpected randomness request response: {response!r}"
            )
        request_id = str(response["requestId"])
        logger.info(
            f"Randomness requested: request_id={request_id} "
            f"confirmations={request.request_confirmations}"
        )
        return request_id

    def get_request_status(self, request_id: str) -> dict:
        """Return the provider's view of ``request_id`` (pending, fulfilled, failed)."""
        response = self._request("GET", f"/api/v1/vrf/requests/{request_id}")
        if not isinstance(response, dict):
            raise RandomnessProviderError(
                f"Unexpected randomness status response: {response!r}"
            )
        return response


__all__ = ["ProviderClient"]
