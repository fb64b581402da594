from pathlib import Path

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from db.models import Base
from doc_chat.logger import GLOBAL_LOGGER as log

SQL_DIR = Path(__file__).resolve().parent / "sql"

# hnsw works on an empty table; ivfflat built before data exists loses recall
EMBEDDING_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS chunks_embedding_idx "
    "ON chunks USING hnsw (embedding vector_cosine_ops)"
)
METADATA_DOCUMENT_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS chunks_metadata_document_id_idx "
    "ON chunks ((metadata->>'document_id'))"
)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the async engine and session factory.
    Built once at startup and shared by the repositories.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_async_engine(url, echo=echo, future=True)

        if self.dialect_name == "sqlite":
            # ON DELETE CASCADE is ignored by SQLite unless enabled per connection
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            expire_on_commit=False,
            class_=AsyncSession,
            autoflush=False,
            autocommit=False,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def init_db(self) -> None:
        """
        Create tables (and on PostgreSQL the vector extension, indexes and the
        match_by_document function) if they do not exist.
        Should be called once at startup.
        """
        async with self.engine.begin() as conn:
            if self.dialect_name == "postgresql":
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

            await conn.run_sync(Base.metadata.create_all)

            if self.dialect_name == "postgresql":
                await conn.execute(text(EMBEDDING_INDEX_DDL))
                await conn.execute(text(METADATA_DOCUMENT_INDEX_DDL))
                ddl = (SQL_DIR / "match_by_document.sql").read_text(encoding="utf-8")
                await conn.exec_driver_sql(ddl)

        log.info("Database initialized | dialect=%s", self.dialect_name)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            log.error("Database ping failed | error=%s", str(e))
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
