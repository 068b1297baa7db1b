from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL

connect_args = {}
engine_kwargs = {"pool_pre_ping": True}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}
    # in-memory sqlite only lives as long as its single connection
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs = {"poolclass": StaticPool}

# create engine
engine = create_engine(DATABASE_URL, connect_args=connect_args, **engine_kwargs)

if engine.dialect.name == "sqlite":
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# session maker
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# base class
Base = declarative_base()


# dependency, one session per request
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # models must be imported so their tables are registered on Base
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
