import sys, pathlib, asyncio
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from sqlalchemy import text
from app.core.config import settings
from app.core.db import SessionLocal, create_all

async def main():
    await create_all()
    print("tables created on:", settings.DATABASE_URL.split("@")[-1])
    async with SessionLocal() as s:
        one = await s.execute(text("SELECT 1"))
        print("db-ping:", one.scalar())

asyncio.run(main())
