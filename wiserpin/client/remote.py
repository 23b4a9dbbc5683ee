from __future__ import annotations

import logging

import httpx

from wiserpin.client.errors import ApiError, AuthError, TransportError
from wiserpin.client.records import RemoteCollection, RemotePin


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "WiserPinSync/1.0",
    "Accept": "application/json",
}


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


def _error_message(response: httpx.Response) -> tuple[str, object]:
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
    return (
        message or f"HTTP {response.status_code}: {response.reason_phrase}",
        body,
    )


def _items(payload) -> list[dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("items", "data"):
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


def _parse(factory, payload):
    try:
        return factory(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise TransportError(f"Malformed record in response: {exc!r}") from exc


def _record(payload) -> dict:
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload if isinstance(payload, dict) else {}


class RemoteClient:
    """Authenticated access to the backend's collection and pin endpoints.

    Every request carries the currently cached bearer token. A 401 answer is
    raised as :class:`AuthError` without retrying; refreshing the token is the
    caller's job.
    """

    def __init__(
        self,
        base_url: str,
        token_provider,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.token_provider = token_provider
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, endpoint: str, json=None, params=None):
        headers = {}
        token = self.token_provider.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._client.request(
                method, endpoint, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            raise TransportError(_normalize_error(exc)) from exc

        if response.status_code == 401:
            message, _ = _error_message(response)
            raise AuthError(message)
        if not response.is_success:
            message, body = _error_message(response)
            raise ApiError(message, status=response.status_code, response=body)

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"Malformed JSON from {method} {endpoint}", status=response.status_code
            ) from exc

    def health(self) -> dict:
        return self._request("GET", "/health")

    def is_reachable(self) -> bool:
        try:
            self.health()
        except (ApiError, AuthError):
            return True
        except TransportError as exc:
            if exc.status:
                return True
            logger.info("Backend unreachable: %s", exc)
            return False
        return True

    # Collections

    def list_collections(self) -> list[RemoteCollection]:
        payload = self._request("GET", "/collections")
        return [
            _parse(RemoteCollection.from_payload, item) for item in _items(payload)
        ]

    def get_collection(self, collection_id: str) -> RemoteCollection:
        payload = self._request("GET", f"/collections/{collection_id}")
        return _parse(RemoteCollection.from_payload, _record(payload))

    def create_collection(self, data: dict) -> RemoteCollection:
        payload = self._request("POST", "/collections", json=data)
        return _parse(RemoteCollection.from_payload, _record(payload))

    def update_collection(self, collection_id: str, data: dict) -> RemoteCollection:
        payload = self._request("PATCH", f"/collections/{collection_id}", json=data)
        return _parse(RemoteCollection.from_payload, _record(payload))

    def delete_collection(self, collection_id: str) -> None:
        self._request("DELETE", f"/collections/{collection_id}")

    # Pins

    def list_pins(self, collection_id: str | None = None) -> list[RemotePin]:
        params = {"collectionId": collection_id} if collection_id else None
        payload = self._request("GET", "/pins", params=params)
        return [_parse(RemotePin.from_payload, item) for item in _items(payload)]

    def get_pin(self, pin_id: str) -> RemotePin:
        payload = self._request("GET", f"/pins/{pin_id}")
        return _parse(RemotePin.from_payload, _record(payload))

    def create_pin(self, data: dict) -> RemotePin:
        payload = self._request("POST", "/pins", json=data)
        return _parse(RemotePin.from_payload, _record(payload))

    def update_pin(self, pin_id: str, data: dict) -> RemotePin:
        payload = self._request("PATCH", f"/pins/{pin_id}", json=data)
        return _parse(RemotePin.from_payload, _record(payload))

    def delete_pin(self, pin_id: str) -> None:
        self._request("DELETE", f"/pins/{pin_id}")
