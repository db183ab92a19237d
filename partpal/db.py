# partpal/db.py
"""Database engine and session utilities.

Centralized SQLAlchemy engine creation and the session dependency helper
for FastAPI. `make_engine` is also used by the migration script to open the
legacy and target databases side by side.
"""
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

load_dotenv()


def normalize_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    # Prisma style sqlite urls
    if url.startswith("file:"):
        return "sqlite:///" + url[len("file:"):]
    return url


def make_engine(url: str):
    url = normalize_url(url)
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    # tuned pool settings for cloud DB
    return create_engine(
        url,
        pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", 10)),
        pool_pre_ping=True
    )


DATABASE_URL = normalize_url(os.getenv("DATABASE_URL", "sqlite:///./partpal.db"))

engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
