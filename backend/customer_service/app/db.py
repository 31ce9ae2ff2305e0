# backend/customer_service/app/db.py

import os

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker


DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_NAME = os.getenv("DB_NAME", "customersdb")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")

DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "1800"))

# Pinned to psycopg2, the driver this project installs
DEFAULT_DATABASE_URL = (
    "postgresql+psycopg2://"
    f"{DB_USER}:{DB_PASSWORD}@"
    f"{DB_HOST}:{DB_PORT}/{DB_NAME}"
)
DATABASE_URL = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL

Base = declarative_base()


class Database:
    """
    Owns the engine and session factory for one database.

    A single instance is created per application and stored on ``app.state``;
    request handlers reach it through ``get_db`` instead of module globals.
    """

    def __init__(self, url: str = DATABASE_URL, **engine_options):
        self.url = url
        if url.startswith("sqlite"):
            # Sessions are used from FastAPI's threadpool
            engine_options.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_options.setdefault("pool_size", DB_POOL_SIZE)
            engine_options.setdefault("max_overflow", 0)
            engine_options.setdefault("pool_timeout", DB_POOL_TIMEOUT)
            engine_options.setdefault("pool_recycle", DB_POOL_RECYCLE)
            engine_options.setdefault("pool_pre_ping", True)

        self.engine = create_engine(url, **engine_options)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def authenticate(self):
        """Open a connection and run a trivial query; raises on failure."""
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def sync_schema(self):
        # create_all only creates missing tables, existing data is untouched
        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        self.engine.dispose()

    def __repr__(self):
        return f"<Database(url='{self.engine.url!r}')>"


def get_db(request: Request):
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()
