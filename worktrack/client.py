# Work tracker — HTTP client
#
# Blocking client for the tracker JSON API. The board sync client runs these
# calls off the event loop. Every failure, transport or HTTP, raises
# TrackerApiError; nothing is retried.

import logging
from typing import Any, Dict, List, Mapping, Union

import requests

from .errors import TrackerApiError
from .schema import FORM_FIELDS, Item, Progress

logger = logging.getLogger(__name__)


class TrackerClient:
    """HTTP client for the tracker API."""

    def __init__(self, base_url: str = "http://localhost:3000", timeout: float = 10,
                 session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TrackerApiError(f"{method} {path} failed: {e}") from e
        if not r.ok:
            message = f"{method} {path} returned {r.status_code}"
            try:
                body = r.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = f"{message}: {body['error']}"
            raise TrackerApiError(message, status=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise TrackerApiError(f"{method} {path} returned invalid JSON", status=r.status_code) from e

    def list_items(self) -> List[Item]:
        """GET /api/items"""
        data = self._request("GET", "/api/items")
        if not isinstance(data, list):
            raise TrackerApiError("GET /api/items did not return a list")
        try:
            return [Item.from_dict(entry) for entry in data]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise TrackerApiError(f"GET /api/items returned a malformed item: {e}") from e

    def create_item(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """POST /api/items with the entry form fields."""
        payload = {name: fields.get(name, "") for name in FORM_FIELDS}
        return self._request("POST", "/api/items", json=payload)

    def update_progress(self, item_id: int, progress: Union[Progress, str]) -> Dict[str, Any]:
        """PUT /api/items/<id>/progress"""
        value = progress.value if isinstance(progress, Progress) else progress
        return self._request("PUT", f"/api/items/{int(item_id)}/progress",
                             json={"progress": value})

    def health(self) -> bool:
        """Check if the tracker server is reachable."""
        try:
            r = self.session.get(f"{self.base_url}/health", timeout=2)
            return r.ok
        except requests.RequestException:
            return False
