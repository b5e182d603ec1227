"""
Reminder sweep entry point, meant to be run once a day by a scheduler:

    python -m app.jobs.send_reminders
"""

import asyncio

from app.core.logging import get_logger, setup_logging
from app.db.session import AsyncSessionLocal, engine
from app.services.reminder_service import send_event_reminders


async def main() -> int:
    logger = get_logger(__name__)
    try:
        async with AsyncSessionLocal() as session:
            try:
                sent = await send_event_reminders(session)
                await session.commit()
            except Exception:
                await session.rollback()
                logger.exception("reminder_sweep_failed")
                raise
    finally:
        await engine.dispose()
    return sent


if __name__ == "__main__":
    setup_logging()
    asyncio.run(main())
