import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

DATABASE_URL = os.getenv("DATABASE_URL", "")

engine = create_engine(DATABASE_URL, future=True, pool_pre_ping=True) if DATABASE_URL else None
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def store_configured() -> bool:
    return engine is not None


class StoreNotConfigured(RuntimeError):
    pass


def require_store() -> None:
    if not store_configured():
        raise StoreNotConfigured("Missing DATABASE_URL")
