import logging
import os
import secrets
import urllib.parse

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from .models import Base


logger = logging.getLogger("db")

# ─── DB setup ───
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite+aiosqlite:////tmp/commission.db").strip()

def _sanitize_url(url: str) -> str:
    """Drop libpq-only SSL query params that asyncpg rejects."""
    try:
        p = urllib.parse.urlsplit(url)
        qs = [(k, v) for k, v in urllib.parse.parse_qsl(p.query, keep_blank_values=True)
              if k.lower() not in {"sslmode", "sslrootcert", "sslcert", "sslkey"}]
        return urllib.parse.urlunsplit((p.scheme, p.netloc, p.path, urllib.parse.urlencode(qs), p.fragment))
    except ValueError:
        return url

def normalize_db_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # Only postgres URLs go through urlsplit; it mangles sqlite:////abs/path
    if "+asyncpg" in url:
        url = _sanitize_url(url)
    return url

db_url = normalize_db_url(DATABASE_URL)
_is_pg = "asyncpg" in db_url

if _is_pg:
    # pgBouncer-safe: no server-side prepared statement cache
    engine = create_async_engine(
        db_url, echo=False, future=True,
        connect_args={
            "statement_cache_size": 0,
            "prepared_statement_cache_size": 0,
            "prepared_statement_name_func": lambda: f"__asyncpg_{secrets.token_hex(8)}__",
        },
        pool_size=2,
        max_overflow=3,
        pool_recycle=120,
        pool_pre_ping=True,
    )
else:
    engine = create_async_engine(db_url, echo=False, future=True, poolclass=NullPool)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def init_models():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready ({'postgres' if _is_pg else 'sqlite'})")


async def get_db():
    async with SessionLocal() as session:
        yield session
