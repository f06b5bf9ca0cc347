"""Database package."""

from .base import Base
from .models import RelaySetting
from .session import create_session_factory, get_database_url, get_engine, init_schema, session_scope
from .store import COOP_ID, PAIRING_CODE, RELAY_ID, RTSP_OVERRIDE, IdentityStore, RelayIdentity

__all__ = [
    "Base",
    "COOP_ID",
    "IdentityStore",
    "PAIRING_CODE",
    "RELAY_ID",
    "RTSP_OVERRIDE",
    "RelayIdentity",
    "RelaySetting",
    "create_session_factory",
    "get_database_url",
    "get_engine",
    "init_schema",
    "session_scope",
]
