"""Run the external uploader process for a captured snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Final, Mapping, Sequence
import os
import shlex
import shutil
import subprocess

from .exceptions import UploadError, UploaderConfigError


UPLOADED_PATH_MARKER: Final[str] = "UPLOADED_IMAGE_PATH:"


@dataclass(frozen=True, slots=True)
class UploadResult:
    """Where the uploader stored the image and what it printed."""

    image_path: str
    from_marker: bool
    output: str


class UploaderExecutor:
    """Invokes `<command> --relay-id ID --image-path FILE` and parses its output."""

    def __init__(
        self,
        command: str | Sequence[str],
        timeout_sec: float = 60.0,
        required_env: Sequence[str] = (),
        extra_env: Mapping[str, str] | None = None,
    ) -> None:
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        self.timeout_sec = timeout_sec
        self.required_env = tuple(required_env)
        self.extra_env = dict(extra_env or {})

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        for key, value in self.extra_env.items():
            env.setdefault(key, value)
        return env

    def check_prerequisites(self) -> None:
        """Raise UploaderConfigError unless the uploader can be launched."""
        if not self.command:
            raise UploaderConfigError("No uploader command configured.")
        if shutil.which(self.command[0]) is None:
            raise UploaderConfigError(f"Uploader binary not found in PATH: {self.command[0]}")
        env = self._environment()
        missing = [name for name in self.required_env if not env.get(name)]
        if missing:
            raise UploaderConfigError(f"Missing uploader environment: {', '.join(missing)}")

    def upload(self, relay_id: str, image_path: str) -> UploadResult:
        command = [*self.command, "--relay-id", relay_id, "--image-path", image_path]
        try:
            proc = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout_sec,
                env=self._environment(),
            )
        except FileNotFoundError as exc:
            raise UploaderConfigError(f"Uploader binary not found in PATH: {self.command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise UploadError("Uploader timed out.") from exc
        except subprocess.CalledProcessError as exc:
            output = f"{exc.stdout or ''}{exc.stderr or ''}".strip()
            raise UploadError(f"Uploader failed: {output}") from exc

        output = f"{proc.stdout or ''}{proc.stderr or ''}"
        uploaded = parse_uploaded_path(proc.stdout or "")
        if uploaded:
            return UploadResult(image_path=uploaded, from_marker=True, output=output)
        return UploadResult(
            image_path=fallback_image_path(relay_id),
            from_marker=False,
            output=output,
        )


def parse_uploaded_path(stdout: str) -> str | None:
    """Return the path announced by the uploader marker line, if any."""
    for line in stdout.splitlines():
        line = line.strip()
        if line.startswith(UPLOADED_PATH_MARKER):
            value = line[len(UPLOADED_PATH_MARKER):].strip()
            if value:
                return value
    return None


def fallback_image_path(relay_id: str, now: datetime | None = None) -> str:
    """Build `<relay_id>/<timestamp>.jpg` when the uploader did not report a path."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    stamp = moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{relay_id}/{stamp}.jpg"
