from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from v4ult.config import settings


def make_engine(url: str):
    """SQLite needs cross-thread connections under FastAPI's threadpool."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

Base = declarative_base()
