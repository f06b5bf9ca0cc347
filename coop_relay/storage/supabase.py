"""Store snapshots in Supabase storage and register them with the backend."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final
import logging
import os

import requests

from .exceptions import UploadError, UploaderConfigError


LOGGER = logging.getLogger(__name__)
SNAPSHOT_BUCKET: Final[str] = "snapshots"
REQUIRED_ENV: Final[tuple[str, ...]] = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY", "COOP_BACKEND_URL")


@dataclass(frozen=True)
class UploadTarget:
    supabase_url: str
    service_key: str
    backend_url: str


def load_upload_target() -> UploadTarget:
    """Read storage credentials from the environment."""
    missing = [name for name in REQUIRED_ENV if not os.getenv(name)]
    if missing:
        raise UploaderConfigError(f"{', '.join(missing)} environment variables must be set")
    return UploadTarget(
        supabase_url=os.environ["SUPABASE_URL"].rstrip("/"),
        service_key=os.environ["SUPABASE_SERVICE_KEY"],
        backend_url=os.environ["COOP_BACKEND_URL"].rstrip("/"),
    )


def object_key_for(relay_id: str, now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"{relay_id}/{moment.strftime('%Y-%m-%d-%H-%M-%S')}.jpg"


def upload_snapshot(
    relay_id: str,
    image_path: str,
    target: UploadTarget,
    timeout_sec: float = 30.0,
    session: requests.Session | None = None,
) -> str:
    """Upload one JPEG, notify the backend, and return the stored object key."""
    if session is None:
        with requests.Session() as owned:
            return upload_snapshot(relay_id, image_path, target, timeout_sec, session=owned)

    try:
        image_bytes = Path(image_path).read_bytes()
    except OSError as exc:
        raise UploadError(f"Error reading image file {image_path}: {exc}") from exc

    object_key = object_key_for(relay_id)
    upload_url = f"{target.supabase_url}/storage/v1/object/{SNAPSHOT_BUCKET}/{object_key}"
    LOGGER.info("Uploading %s to %s", image_path, upload_url)

    try:
        response = session.put(
            upload_url,
            data=image_bytes,
            headers={
                "Authorization": f"Bearer {target.service_key}",
                "Content-Type": "image/jpeg",
            },
            timeout=timeout_sec,
        )
    except requests.RequestException as exc:
        raise UploadError(f"Error executing storage upload request: {exc}") from exc
    if not response.ok:
        raise UploadError(
            f"Error uploading to storage. Status: {response.status_code}, Body: {response.text}"
        )

    notify_url = f"{target.backend_url}/api/snapshots"
    LOGGER.info("Sending notification to %s", notify_url)
    try:
        notify = session.post(
            notify_url,
            json={"relay_id": relay_id, "image_filename": object_key},
            timeout=timeout_sec,
        )
    except requests.RequestException as exc:
        raise UploadError(f"Error executing backend notification request: {exc}") from exc
    if not notify.ok:
        raise UploadError(
            f"Error notifying backend. Status: {notify.status_code}, Body: {notify.text}"
        )
    return object_key
