"""Recompute percentage, grade and pass status of every stored grade record.

Records written by older releases used a five-band grade table in some code
paths. Run once after upgrading so all history follows the eight-band table.

Usage: python -m scripts.regrade_records
"""
import asyncio

from markbook.core.database import SessionLocal, engine
from markbook.services.grade_store import GradeRecordStore


async def main() -> None:
    store = GradeRecordStore(SessionLocal)
    changed = await store.regrade_all()
    print(f"Regraded {changed} record(s)")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
