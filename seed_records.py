#!/usr/bin/env python3
from __future__ import annotations

import logging
import sys
from pathlib import Path


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python seed_records.py <records.csv> [--force]")
        return 2

    csv_path = sys.argv[1]
    force = "--force" in sys.argv[2:]

    # Import from backend package (works regardless of current working directory)
    repo_root = Path(__file__).resolve().parent
    sys.path.insert(0, str((repo_root / "backend").resolve()))
    from config import settings  # type: ignore
    from database import engine, session_scope  # type: ignore
    from models import Base  # type: ignore
    from services.ingest_service import IngestService  # type: ignore

    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    Base.metadata.create_all(bind=engine)

    svc = IngestService()
    with session_scope() as db:
        if svc.has_any_data(db) and not force:
            print("database already has records; pass --force to append")
            return 1
        res = svc.ingest_file(db, csv_path)
    print(
        f"patients={res.patients} doctors={res.doctors} prescriptions={res.prescriptions} skipped={res.skipped_rows}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
