# scripts/setup/init_db.py
"""
Initialize database: creates all tables and seeds the hook board.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text

from valet.config import settings
from valet.database import SessionLocal, create_tables, engine
from valet.services.orchestrator import Orchestrator
from valet.services.repository import SqlRepository


def main():
    print("Valet DB Initialization")
    print("=" * 40)
    print(f"Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")
    except Exception as e:
        print(f"Cannot connect to database: {e}")
        sys.exit(1)

    print("\nCreating tables...")
    create_tables()

    # restore() seeds hooks 1..HOOK_COUNT when the board table is empty
    core = Orchestrator(hook_count=settings.HOOK_COUNT, repository=SqlRepository(SessionLocal))
    core.restore()
    stats = core.hook_stats()

    tables = sorted(inspect(engine).get_table_names())
    print(f"\nTables in database ({len(tables)} total):")
    for t in tables:
        print(f"   - {t}")
    print(f"\nHook board: {stats.available}/{stats.total} free")

    print("\nDatabase ready! You can now start the backend:")
    print(f"   uvicorn valet.main:app --host 0.0.0.0 --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
