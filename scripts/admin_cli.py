#!/usr/bin/env python3
"""Admin maintenance CLI for the waitlist tables."""

from __future__ import annotations

import argparse
import csv
import os
import sys

# Make the project root importable when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config  # noqa: E402
from services.waitlist_store import StoreError, build_store  # noqa: E402


def get_store():
    return build_store(vars(Config))


def init_db():
    get_store().init_schema()
    print("schema_ready")


def list_signups():
    signups = get_store().list_signups()
    for record in signups:
        print(f"{record.created_at or '-'}\t{record.email}")
    print(f"total_signups={len(signups)}")


def export_signups(output: str):
    signups = get_store().list_signups()
    with open(output, 'w', newline='', encoding='utf-8') as fh:
        writer = csv.writer(fh)
        writer.writerow(['email', 'project_name', 'created_at'])
        for record in signups:
            writer.writerow([record.email, record.project_name, record.created_at or ''])
    print(f"exported_rows={len(signups)}")


def count_visits():
    print(f"total_visits={get_store().count_visits()}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='BotVault waitlist admin utility')
    sub = parser.add_subparsers(dest='cmd', required=True)

    sub.add_parser('init-db')
    sub.add_parser('list-signups')

    p_export = sub.add_parser('export-signups')
    p_export.add_argument('--output', required=True)

    sub.add_parser('count-visits')

    args = parser.parse_args(argv)

    try:
        if args.cmd == 'init-db':
            init_db()
        elif args.cmd == 'list-signups':
            list_signups()
        elif args.cmd == 'export-signups':
            export_signups(args.output)
        elif args.cmd == 'count-visits':
            count_visits()
    except StoreError as exc:
        print(f"store_error={exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
