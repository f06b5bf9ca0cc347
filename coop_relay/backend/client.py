"""HTTP client for the coop backend relay endpoints."""

from __future__ import annotations

from typing import Any
import logging

import requests

from .exceptions import BackendHTTPError, BackendProtocolError, BackendTransportError
from .models import (
    ClaimResult,
    PairingCodeGrant,
    PairingStatus,
    RelayConfig,
    RelayStatus,
    SnapshotRecord,
)


LOGGER = logging.getLogger(__name__)


class BackendClient:
    """Thin typed wrapper over the relay REST API."""

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout_sec,
            )
        except requests.RequestException as exc:
            raise BackendTransportError(f"{method} {path} failed: {exc}") from exc
        LOGGER.debug("%s %s -> %s", method, path, response.status_code)
        if not 200 <= response.status_code < 300:
            raise BackendHTTPError(response.status_code, response.text, path)
        return response

    @staticmethod
    def _json(response: requests.Response, path: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendProtocolError(f"{path} returned malformed JSON") from exc

    def _json_object(self, response: requests.Response, path: str) -> dict[str, Any]:
        payload = self._json(response, path)
        if not isinstance(payload, dict):
            raise BackendProtocolError(f"{path} returned {type(payload).__name__}, expected object")
        return payload

    def request_pairing_code(self, relay_id: str | None = None) -> PairingCodeGrant:
        path = "/api/relay/request_pairing_code"
        body = {"relay_id": relay_id} if relay_id else {}
        payload = self._json_object(self._request("POST", path, json_body=body), path)
        pairing_code = payload.get("pairing_code")
        new_relay_id = payload.get("relay_id")
        if not pairing_code or not new_relay_id:
            raise BackendProtocolError(f"{path} response missing pairing_code or relay_id")
        return PairingCodeGrant(pairing_code=str(pairing_code), relay_id=str(new_relay_id))

    def get_pairing_status(self, pairing_code: str) -> PairingStatus:
        path = "/api/relay/config"
        response = self._request("GET", path, params={"pairing_code": pairing_code})
        payload = self._json_object(response, path)
        return PairingStatus(
            status=str(payload.get("status") or ""),
            relay_id=payload.get("relay_id") or None,
            coop_id=payload.get("coop_id") or None,
        )

    def get_config(self, relay_id: str) -> RelayConfig:
        path = "/api/relay/config"
        response = self._request("GET", path, params={"relay_id": relay_id})
        return RelayConfig.from_payload(self._json_object(response, path))

    def post_heartbeat(self, relay_id: str) -> None:
        self._request("POST", "/api/relay/status", json_body={"relay_id": relay_id})

    def read_status(self, relay_id: str) -> RelayStatus:
        path = "/api/relay/status/read"
        response = self._request("GET", path, params={"relay_id": relay_id})
        return RelayStatus.from_payload(self._json_object(response, path))

    def notify_snapshot_created(self, image_path: str) -> None:
        self._request("POST", "/api/internal/snapshot-created", json_body={"image_path": image_path})

    def claim_relay(self, pairing_code: str, access_token: str) -> ClaimResult:
        path = "/api/relay/claim"
        response = self._request(
            "POST",
            path,
            json_body={"pairing_code": pairing_code},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        payload = self._json_object(response, path)
        if not payload.get("relay_id"):
            raise BackendProtocolError(f"{path} response missing relay_id")
        return ClaimResult(relay_id=str(payload["relay_id"]), status=str(payload.get("status") or ""))

    def update_config(self, relay_id: str, interval: str, rtsp_url: str | None = None) -> None:
        body: dict[str, Any] = {"relay_id": relay_id, "interval": interval}
        if rtsp_url is not None:
            body["rtsp_url"] = rtsp_url
        self._request("POST", "/api/relay/config", json_body=body)

    def list_snapshots(self, relay_id: str, limit: int = 20) -> list[SnapshotRecord]:
        path = "/api/relay/snapshots"
        response = self._request("GET", path, params={"relay_id": relay_id, "limit": limit})
        payload = self._json(response, path) or []
        if not isinstance(payload, list):
            raise BackendProtocolError(f"{path} returned {type(payload).__name__}, expected list")
        return [
            SnapshotRecord(
                id=str(item.get("id", "")),
                created_at=item.get("created_at"),
                image_path=item.get("image_path"),
            )
            for item in payload
            if isinstance(item, dict)
        ]
