# cart_service/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from cart_service.utils.settings import (
    DATABASE_URL,
    DB_POOL_TIMEOUT_SECONDS,
    DB_STATEMENT_TIMEOUT_MS,
)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        #sqlite tylko lokalnie/testy, sesje uzywane z threadpoola fastapi
        return {"connect_args": {"check_same_thread": False}}

    return {
        "pool_pre_ping": True,
        "pool_timeout": DB_POOL_TIMEOUT_SECONDS,
        "connect_args": {"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"},
    }


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = sessionmaker(bind=engine, autoflush=False)

Base = declarative_base()


def init_db(bind=None) -> None:
    # import modeli zeby zarejestrowaly sie w Base.metadata przed create_all
    from cart_service.data import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
