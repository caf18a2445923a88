from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from .config import settings


def _normalized_database_url(raw_url: str) -> str:
    """
    DATABASE_URL normalisation:
    - postgres:// or postgresql:// without a driver -> psycopg3 dialect.
    - Anything else (SQLite etc.) is left untouched.
    """
    if not raw_url:
        return "sqlite:///./crypbuy.db"
    raw_url = raw_url.strip()
    if raw_url.startswith("postgres://"):
        return "postgresql+psycopg://" + raw_url[len("postgres://") :]
    if raw_url.startswith("postgresql://") and "+psycopg" not in raw_url.split("://", 1)[0]:
        return "postgresql+psycopg://" + raw_url[len("postgresql://") :]
    return raw_url


def create_db_engine(url: str) -> Engine:
    url = _normalized_database_url(url)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    # In-memory SQLite: one shared connection so tables created by init_db are visible everywhere
    in_memory = url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")
    return create_engine(
        url,
        connect_args=connect_args,
        poolclass=StaticPool if in_memory else None,
    )


DATABASE_URL = _normalized_database_url(settings.database_url)
engine = create_db_engine(DATABASE_URL)


def init_db(bind: Engine | None = None) -> None:
    # Table models must be imported before create_all
    from app import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def ping_db(bind: Engine | None = None) -> bool:
    try:
        with (bind or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
