"""
Copy inline document payloads into blob storage.

Run after the ``add two-tier payload columns`` migration. For every row that
still carries its payload inline and has no ``payload_key`` yet, the payload
is written to the blob store and the row gets ``payload_key``, ``byte_size``
and ``display_name``. Rows are committed one at a time so the script can be
re-run after a failure.

    python scripts/migrate_inline_payloads.py [--dry-run]
"""

import argparse
import json
import os
import sys
import uuid

# Add the project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import MetaData, Table, select, update  # noqa: E402

from resume_pipeline.core.config import get_settings  # noqa: E402
from resume_pipeline.core.constants import DOCUMENTS_TABLE, PAYLOAD_KEY_TEMPLATE  # noqa: E402
from resume_pipeline.db.session import build_engine  # noqa: E402
from resume_pipeline.storage.blob_store import LocalBlobStore  # noqa: E402
from resume_pipeline.utils.exceptions import StorageError  # noqa: E402


def display_name_for(payload):
    info = payload.get("personalInfo") or {}
    name = " ".join(p for p in (info.get("firstName"), info.get("lastName")) if p)
    return name or "Untitled"


def migrate_payloads(engine, blob_store, dry_run=False):
    """Returns (migrated, failed) row counts"""
    table = Table(DOCUMENTS_TABLE, MetaData(), autoload_with=engine)
    if "payload" not in table.c or "payload_key" not in table.c:
        print("Documents table does not have both payload columns; nothing to do")
        return 0, 0

    with engine.connect() as conn:
        rows = conn.execute(
            select(table.c.id, table.c.owner_id, table.c.payload).where(
                table.c.payload_key.is_(None), table.c.payload.isnot(None)
            )
        ).fetchall()

    if not rows:
        print("No inline payloads found")
        return 0, 0

    migrated = failed = 0
    for row in rows:
        payload = row.payload if isinstance(row.payload, dict) else json.loads(row.payload)
        payload_bytes = json.dumps(payload, indent=2).encode("utf-8")
        key = PAYLOAD_KEY_TEMPLATE.format(owner_id=row.owner_id, file_id=uuid.uuid4().hex)

        if dry_run:
            print(f"[dry-run] {row.id} -> {key} ({len(payload_bytes)} bytes)")
            migrated += 1
            continue

        try:
            blob_store.put(key, payload_bytes, "application/json")
        except StorageError as e:
            print(f"Error writing payload of {row.id}: {e}")
            failed += 1
            continue

        with engine.begin() as conn:
            conn.execute(
                update(table)
                .where(table.c.id == row.id, table.c.payload_key.is_(None))
                .values(
                    payload_key=key,
                    byte_size=len(payload_bytes),
                    display_name=display_name_for(payload),
                )
            )
        migrated += 1

    print(f"Successfully migrated {migrated} payload(s), {failed} failed")
    return migrated, failed


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--dry-run", action="store_true", help="only list what would move")
    args = parser.parse_args()

    settings = get_settings()
    engine = build_engine(settings.DATABASE_URL)
    blob_store = LocalBlobStore(settings.BLOB_STORAGE_PATH)

    _, failed = migrate_payloads(engine, blob_store, dry_run=args.dry_run)
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
