from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from treasury_relay.config import settings

# Base class for all models
Base = declarative_base()


def build_engine(url: str, **kwargs):
    """Create an engine; SQLite files are shared across worker threads."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False, "timeout": 30})
    else:
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
    return create_engine(url, pool_pre_ping=True, echo=False, **kwargs)


# Database engine
engine = build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create missing tables. Deployments with migrations can skip this."""
    from treasury_relay import models  # noqa: F401  registers the tables
    Base.metadata.create_all(bind=engine)
