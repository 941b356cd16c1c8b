from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from config import resolve_database_url

# DATABASE_URL, or one assembled from PG_HOST / PG_DATABASE / ...
DATABASE_URL = resolve_database_url()

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL (or PG_HOST and PG_DATABASE) environment variable is not set")

_connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # Worker threads share the engine during price checks
    _connect_args["check_same_thread"] = False

# Create the engine
engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    future=True,
    connect_args=_connect_args,
)

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for your models
Base = declarative_base()
