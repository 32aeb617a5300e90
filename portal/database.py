from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()
engine = None
SessionLocal = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(database_url: str):
    global engine, SessionLocal
    if engine is None:
        connect_args = {}
        if database_url.startswith("sqlite"):
            # sync routes run in a threadpool
            connect_args["check_same_thread"] = False
        engine = create_engine(database_url, connect_args=connect_args)
        if engine.dialect.name == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        SessionLocal = sessionmaker(autoflush=False, bind=engine)
        # create tables
        from portal import models
        Base.metadata.create_all(bind=engine)


def dispose_db():
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None
