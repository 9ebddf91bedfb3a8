"""Run the scheduled nudge job once, without going through HTTP.

Usable from a plain crontab on hosts that cannot reach the API with the
cron secret.
"""

import sys, pathlib, asyncio
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from app.core.db import SessionLocal
from app.core.logging import setup_logging
from app.services.email_gateway import HttpEmailGateway
from app.services.notifications import NotificationDispatcher, run_scheduled_nudges

async def main():
    setup_logging()
    dispatcher = NotificationDispatcher(SessionLocal, HttpEmailGateway())
    async with SessionLocal() as s:
        counts = await run_scheduled_nudges(s, dispatcher)
    for kind, count in counts.items():
        print(f"{kind}: {count}")

if __name__ == "__main__":
    asyncio.run(main())
