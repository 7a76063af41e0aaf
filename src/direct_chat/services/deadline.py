from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from direct_chat.application.exceptions import UnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def persistence_deadline(seconds: float) -> AsyncIterator[None]:
    """Bound a block of persistence calls.

    A timeout, an exhausted pool or a lost database connection all surface
    as UnavailableError, whichever transport issued the call.
    """
    try:
        async with asyncio.timeout(seconds):
            yield
    except TimeoutError as exc:
        raise UnavailableError("Storage did not respond in time") from exc
    except (OperationalError, PoolTimeoutError) as exc:
        logger.error("Database unavailable: %s", exc)
        raise UnavailableError("Storage unavailable") from exc
