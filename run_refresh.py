"""Run one country refresh from the command line, outside the HTTP server."""
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from database import async_session, create_tables, engine
from logger import get_logger
from service import DataSourceUnavailable, country_service

logger = get_logger(__name__)


async def run() -> int:
    await create_tables()
    try:
        async with async_session() as session:
            result = await country_service.refresh_countries(session)
    except DataSourceUnavailable as e:
        logger.error(f"External data source unavailable: {e}")
        return 2
    except SQLAlchemyError:
        # already logged with traceback by the service
        return 1
    finally:
        await engine.dispose()

    print(f"Refreshed {result.total_processed} countries at {result.refreshed_at.isoformat()}")
    return 0


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
