"""Durable relay identity backed by the local key-value table."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Mapping

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from .models import RelaySetting
from .session import session_scope


RELAY_ID: Final[str] = "relay_id"
PAIRING_CODE: Final[str] = "pairing_code"
RTSP_OVERRIDE: Final[str] = "rtsp_override"
COOP_ID: Final[str] = "coop_id"


@dataclass(frozen=True)
class RelayIdentity:
    relay_id: str | None = None
    pairing_code: str | None = None
    rtsp_override: str | None = None
    coop_id: str | None = None


class IdentityStore:
    """Namespaced string store; writing None or "" removes the key."""

    def __init__(self, session_factory: sessionmaker[Session], namespace: str = "coop-relay") -> None:
        self._session_factory = session_factory
        self.namespace = namespace

    def get(self, key: str) -> str | None:
        with session_scope(self._session_factory) as session:
            return session.execute(
                select(RelaySetting.value).where(
                    RelaySetting.namespace == self.namespace,
                    RelaySetting.key == key,
                )
            ).scalar_one_or_none()

    def set(self, key: str, value: str | None) -> None:
        with session_scope(self._session_factory) as session:
            self._write(session, key, value)

    def update(self, values: Mapping[str, str | None]) -> None:
        """Write several keys in one transaction."""
        with session_scope(self._session_factory) as session:
            for key, value in values.items():
                self._write(session, key, value)

    def _write(self, session: Session, key: str, value: str | None) -> None:
        if not value:
            self._delete(session, key)
            return
        row = session.execute(
            select(RelaySetting).where(
                RelaySetting.namespace == self.namespace,
                RelaySetting.key == key,
            )
        ).scalar_one_or_none()
        if row is None:
            session.add(RelaySetting(namespace=self.namespace, key=key, value=value))
        else:
            row.value = value

    def delete(self, key: str) -> None:
        with session_scope(self._session_factory) as session:
            self._delete(session, key)

    def _delete(self, session: Session, key: str) -> None:
        session.execute(
            delete(RelaySetting).where(
                RelaySetting.namespace == self.namespace,
                RelaySetting.key == key,
            )
        )

    def load(self) -> RelayIdentity:
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(RelaySetting.key, RelaySetting.value).where(
                    RelaySetting.namespace == self.namespace
                )
            ).all()
        values = {row.key: row.value for row in rows}
        return RelayIdentity(
            relay_id=values.get(RELAY_ID),
            pairing_code=values.get(PAIRING_CODE),
            rtsp_override=values.get(RTSP_OVERRIDE),
            coop_id=values.get(COOP_ID),
        )

    @property
    def relay_id(self) -> str | None:
        return self.get(RELAY_ID)

    @property
    def pairing_code(self) -> str | None:
        return self.get(PAIRING_CODE)

    @property
    def rtsp_override(self) -> str | None:
        return self.get(RTSP_OVERRIDE)
