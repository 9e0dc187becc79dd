from sqlalchemy import event
from sqlmodel import SQLModel, create_engine, Session

from .config import get_settings


def make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    eng = create_engine(url, echo=False, connect_args=connect_args)
    if url.startswith("sqlite"):

        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return eng


engine = make_engine(get_settings().database_url)


def init_db():
    from . import models  # ensure models imported
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine)
