from datetime import datetime
from zoneinfo import ZoneInfo

from loguru import logger
from sqlalchemy import Column, DateTime, String, Text, create_engine, delete, event
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class KeyValue(Base):
    __tablename__ = "key_value"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    # timezone-aware UTC
    updated_at = Column(DateTime(timezone=True), nullable=False)


def _sqlite_pragmas(dbapi_con, _con_record):
    cur = dbapi_con.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    cur.execute("PRAGMA foreign_keys=ON;")
    cur.close()


class KeyValueStorage:
    """
    Opaque text store keyed by name. Writes are committed immediately;
    SQLAlchemy errors are left to propagate to the caller.
    """

    def __init__(self, database_url: str):
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine = create_engine(
            database_url,
            echo=False,
            future=True,
            connect_args=connect_args,
            pool_pre_ping=True,
        )
        if database_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _sqlite_pragmas)

        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def get(self, key: str) -> str | None:
        with self.Session() as session:
            row = session.get(KeyValue, key)
            return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        with self.Session() as session:
            row = session.get(KeyValue, key)
            now = datetime.now(tz=ZoneInfo("UTC"))
            if row is None:
                session.add(KeyValue(key=key, value=value, updated_at=now))
            else:
                row.value = value
                row.updated_at = now
            session.commit()

    def delete(self, key: str) -> None:
        with self.Session() as session:
            session.execute(delete(KeyValue).where(KeyValue.key == key))
            session.commit()

    def clear(self) -> None:
        with self.Session() as session:
            result = session.execute(delete(KeyValue))
            session.commit()
        logger.info("Cleared persisted storage ({} keys)", result.rowcount)
