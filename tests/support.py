from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from coop_relay.db import IdentityStore, create_session_factory, init_schema


def memory_store(namespace: str = "coop-relay-test") -> IdentityStore:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_schema(engine)
    return IdentityStore(create_session_factory(engine), namespace=namespace)
