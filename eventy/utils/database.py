
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from eventy.utils.config import settings


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    db_engine = create_engine(url, connect_args=connect_args)

    if db_engine.dialect.name == "sqlite":
        @event.listens_for(db_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # transactions are begun explicitly below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(db_engine, "begin")
        def _on_begin(conn):
            # every transaction holds the write lock from its first statement
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return db_engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()
