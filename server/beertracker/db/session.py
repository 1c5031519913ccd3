from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from beertracker.core.config import settings


def build_engine(uri: str) -> Engine:
    if not uri.startswith("sqlite"):
        return create_engine(uri, pool_pre_ping=True)

    eng = create_engine(
        uri,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(eng, "connect")
    def _sqlite_pragmas(dbapi_conn: object, _record: object) -> None:
        cur = dbapi_conn.cursor()  # type: ignore[attr-defined]
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    return eng


engine = build_engine(settings.sqlalchemy_database_uri)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

