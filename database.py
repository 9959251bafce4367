import os
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

load_dotenv()

# Connection resolution order:
# 1. DATABASE_URL as-is (must use an async driver)
# 2. MYSQL_* env vars -> mysql+aiomysql DSN
# 3. local SQLite file through aiosqlite

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    mysql_user = os.getenv("MYSQL_USER")
    mysql_pass = os.getenv("MYSQL_PASSWORD")
    mysql_host = os.getenv("DATABASE_HOST") or os.getenv("MYSQL_HOST")
    mysql_port = os.getenv("DATABASE_PORT") or os.getenv("MYSQL_PORT")
    mysql_db = os.getenv("MYSQL_DATABASE")

    if mysql_user and mysql_pass and mysql_host and mysql_db:
        port_part = f":{mysql_port}" if mysql_port else ""
        DATABASE_URL = f"mysql+aiomysql://{mysql_user}:{mysql_pass}@{mysql_host}{port_part}/{mysql_db}"
    else:
        DATABASE_URL = os.getenv("SQLITE_DATABASE_URL", "sqlite+aiosqlite:///./countries.db")

DB_ECHO = os.getenv("DB_ECHO", "false").lower() in ("1", "true", "yes")

engine_options = {"echo": DB_ECHO}
# SQLite has no READ COMMITTED level; it keeps its own serializable behaviour
if not DATABASE_URL.startswith("sqlite"):
    engine_options["isolation_level"] = "READ COMMITTED"
    engine_options["pool_pre_ping"] = True

engine = create_async_engine(DATABASE_URL, **engine_options)

async_session = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def create_tables():
    # models must be imported so their tables are registered on Base.metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
