from typing import Optional, Dict, Any

import requests

from errors import UpstreamError
from logger import get_logger

logger = get_logger(__name__)


class ShopifyClient:
    """Minimal Admin REST client bound to one shop and access token."""

    def __init__(self, shop: str, access_token: str, api_version: str = "2024-04", timeout: float = 30.0):
        self.shop = shop
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/{path}"

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET one page of `path`. Any transport error or non-200 raises UpstreamError."""
        headers = {"X-Shopify-Access-Token": self.access_token, "Accept": "application/json"}
        try:
            r = requests.get(self.url(path), headers=headers, params=params or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"Shopify request to {path} failed: {e}") from e

        if r.status_code != 200:
            raise UpstreamError(f"Shopify {path} returned HTTP {r.status_code}: {r.text[:200]}")
        try:
            body = r.json()
        except ValueError as e:
            raise UpstreamError(f"Shopify {path} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise UpstreamError(f"Shopify {path} returned a non-object body")
        return body
