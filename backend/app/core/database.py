from datetime import datetime, timezone
from sqlalchemy import create_engine, Enum
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import settings

# Render uses postgres:// but SQLAlchemy + psycopg3 needs postgresql+psycopg://
db_url = settings.DATABASE_URL
if db_url.startswith("postgres://"):
    db_url = "postgresql+psycopg://" + db_url[len("postgres://"):]
elif db_url.startswith("postgresql://") and "+psycopg" not in db_url:
    db_url = "postgresql+psycopg://" + db_url[len("postgresql://"):]

if db_url.startswith("sqlite"):
    # Local runs and tests; in-memory databases must share one connection
    engine_kwargs = {"connect_args": {"check_same_thread": False}}
    if db_url in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs = {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}

# Create engine
engine = create_engine(db_url, echo=False, **engine_kwargs)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Dependency for FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def value_enum(enum_cls, **kwargs):
    """String-backed Enum column type that stores member values ("pending"), not names."""
    kwargs.setdefault("native_enum", False)
    kwargs.setdefault("length", 32)
    return Enum(enum_cls, values_callable=lambda cls: [member.value for member in cls], **kwargs)
