"""Create the chats/messages tables on the configured database."""
from __future__ import annotations

import logging

from sqlalchemy import create_engine, text

from direct_chat.config import settings
from direct_chat.infrastructure.db.base import Base
from direct_chat.infrastructure.db import models  # noqa: F401  (registers tables)
from direct_chat.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_schema() -> None:
    engine = create_engine(settings.sync_database_url)
    try:
        with engine.begin() as conn:
            # gen_random_uuid() on older Postgres versions
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
        Base.metadata.create_all(engine)
        logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))
    finally:
        engine.dispose()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    create_schema()


if __name__ == "__main__":
    main()
