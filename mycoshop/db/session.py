from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlmodel import SQLModel, create_engine, Session
from mycoshop.core.config import settings

def engine_connect_args(url: str, timeout: float) -> dict:
    """Driver arguments that cap how long one statement may wait on the store."""
    if url.startswith("sqlite"):
        # check_same_thread is needed for SQLite; timeout bounds lock waits
        return {"check_same_thread": False, "timeout": timeout}
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={int(timeout * 1000)}"}
    return {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=engine_connect_args(settings.DATABASE_URL, settings.DATABASE_TIMEOUT_SECONDS),
    pool_pre_ping=True,
)

def get_session():
    with Session(engine) as session:
        yield session

def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)

def database_available(session: Session) -> bool:
    """True when the store behind ``session`` answers a trivial query."""
    try:
        session.connection().execute(text("SELECT 1"))
        return True
    except OperationalError:
        session.rollback()
        return False
