from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from src.settings import settings

Base = declarative_base()


def build_engine(db_url: str, **kwargs):
    """
    Create an engine for the given URL. SQLite connections are shared
    with the FastAPI threadpool, so the same-thread check is disabled.
    """
    if db_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    return create_engine(db_url, **kwargs)


engine = build_engine(settings.DB_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    # Import models so they register on Base.metadata
    from src.models import directory, grading  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


# Dependency to get DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
