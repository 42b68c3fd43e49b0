#!/usr/bin/env python3
"""Snapshot the SQLite waitlist database, gzip it, and optionally ship it to S3.

Settings come from ``config.Config`` (and therefore from ``.env``). Hosted
Supabase projects are backed up by Supabase itself, so that backend is refused.
"""

from __future__ import annotations

import gzip
import os
import shutil
import sqlite3
import sys
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

# Make the project root importable when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config  # noqa: E402


class BackupError(Exception):
    pass


def backup_database(config=Config) -> Path:
    if (config.DATABASE_BACKEND or 'sqlite').lower() != 'sqlite':
        raise BackupError(
            f'backups only cover the sqlite backend (DATABASE_BACKEND={config.DATABASE_BACKEND}); '
            'use the Supabase dashboard for hosted projects'
        )

    db_path = Path(config.DATABASE_PATH)
    if not db_path.exists():
        raise BackupError(f'database not found: {db_path}')

    target_dir = Path(config.BACKUP_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')
    snapshot = target_dir / f'{config.PROJECT_NAME}_waitlist_{stamp}.sqlite3'
    archive = snapshot.with_name(snapshot.name + '.gz')

    with closing(sqlite3.connect(str(db_path))) as source, closing(sqlite3.connect(str(snapshot))) as dest:
        source.backup(dest)

    with open(snapshot, 'rb') as raw, gzip.open(archive, 'wb') as packed:
        shutil.copyfileobj(raw, packed)
    snapshot.unlink(missing_ok=True)

    if config.S3_BACKUP_BUCKET:
        import boto3

        boto3.client('s3', region_name=config.AWS_REGION).upload_file(
            str(archive), config.S3_BACKUP_BUCKET, archive.name
        )

    return archive


def main():
    try:
        archive = backup_database()
    except BackupError as exc:
        print(f'backup_failed={exc}', file=sys.stderr)
        return 1
    print(f'backup_created={archive}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
