"""Persistence for waitlist signups and visitor analytics.

Two backends share one interface: a local SQLite file and a hosted Supabase
project reached through its PostgREST API. Both report a unique-email
violation as ``DuplicateRecord`` so callers never depend on a client-side
pre-check for uniqueness.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from postgrest.exceptions import APIError

logger = logging.getLogger(__name__)

IDENTIFIER_REGEX = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
PG_UNIQUE_VIOLATION = '23505'


class StoreError(Exception):
    """The persistence collaborator could not complete an operation."""


class DuplicateRecord(StoreError):
    """An insert collided with an existing signup email."""


@dataclass
class SignupRecord:
    email: str
    project_name: str
    created_at: Optional[str] = None


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _checked_identifier(name: str) -> str:
    if not name or not IDENTIFIER_REGEX.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


class SignupStore:
    """Interface consumed by the signup handler, the visitor tracker and the admin CLI."""

    def __init__(self, signups_table: str, visitors_table: str):
        self.signups_table = _checked_identifier(signups_table)
        self.visitors_table = _checked_identifier(visitors_table)

    def init_schema(self) -> None:
        return None

    def signup_exists(self, email: str) -> bool:
        raise NotImplementedError

    def add_signup(self, email: str, project_name: str) -> SignupRecord:
        raise NotImplementedError

    def add_visit(self, page_url: str, user_agent: str, project_name: str) -> None:
        raise NotImplementedError

    def list_signups(self) -> List[SignupRecord]:
        raise NotImplementedError

    def count_visits(self) -> int:
        raise NotImplementedError


class SQLiteSignupStore(SignupStore):
    def __init__(self, database_path: str, signups_table: str, visitors_table: str):
        super().__init__(signups_table, visitors_table)
        self.database_path = database_path

    def connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.database_path)

    def init_schema(self) -> None:
        """Create the signups and visitors tables if they are missing."""
        try:
            with closing(self.connect()) as conn:
                c = conn.cursor()
                c.execute(
                    f'''
                    CREATE TABLE IF NOT EXISTS {self.signups_table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        email TEXT NOT NULL UNIQUE CHECK (email = lower(email)),
                        project_name TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    '''
                )
                c.execute(
                    f'''
                    CREATE TABLE IF NOT EXISTS {self.visitors_table} (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        page_url TEXT NOT NULL,
                        user_agent TEXT NOT NULL,
                        project_name TEXT NOT NULL,
                        created_at TEXT NOT NULL
                    )
                    '''
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Could not initialise schema: {exc}") from exc

    def signup_exists(self, email: str) -> bool:
        try:
            with closing(self.connect()) as conn:
                c = conn.cursor()
                c.execute(f'SELECT email FROM {self.signups_table} WHERE email = ? LIMIT 1', (email,))
                row = c.fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Duplicate check failed: {exc}") from exc
        return row is not None

    def add_signup(self, email: str, project_name: str) -> SignupRecord:
        created_at = _utcnow_iso()
        try:
            with closing(self.connect()) as conn:
                conn.execute(
                    f'INSERT INTO {self.signups_table} (email, project_name, created_at) VALUES (?, ?, ?)',
                    (email, project_name, created_at),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            if 'UNIQUE' in str(exc).upper():
                raise DuplicateRecord(email) from exc
            raise StoreError(f"Insert rejected: {exc}") from exc
        except sqlite3.Error as exc:
            raise StoreError(f"Insert failed: {exc}") from exc
        return SignupRecord(email=email, project_name=project_name, created_at=created_at)

    def add_visit(self, page_url: str, user_agent: str, project_name: str) -> None:
        try:
            with closing(self.connect()) as conn:
                conn.execute(
                    f'INSERT INTO {self.visitors_table} (page_url, user_agent, project_name, created_at) VALUES (?, ?, ?, ?)',
                    (page_url, user_agent, project_name, _utcnow_iso()),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Visit insert failed: {exc}") from exc

    def list_signups(self) -> List[SignupRecord]:
        try:
            with closing(self.connect()) as conn:
                c = conn.cursor()
                c.execute(f'SELECT email, project_name, created_at FROM {self.signups_table} ORDER BY id')
                rows = c.fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Listing signups failed: {exc}") from exc
        return [SignupRecord(email=r[0], project_name=r[1], created_at=r[2]) for r in rows]

    def count_visits(self) -> int:
        try:
            with closing(self.connect()) as conn:
                c = conn.cursor()
                c.execute(f'SELECT COUNT(*) FROM {self.visitors_table}')
                count = c.fetchone()[0]
        except sqlite3.Error as exc:
            raise StoreError(f"Counting visits failed: {exc}") from exc
        return int(count)


class SupabaseSignupStore(SignupStore):
    """Store backed by a Supabase client (``supabase.create_client``).

    The hosted tables are expected to carry a unique index on ``email``.
    """

    def __init__(self, client, signups_table: str, visitors_table: str):
        super().__init__(signups_table, visitors_table)
        self.client = client

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as exc:
            if getattr(exc, 'code', None) == PG_UNIQUE_VIOLATION:
                raise DuplicateRecord(action) from exc
            raise StoreError(f"{action} failed: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"{action} failed: {exc}") from exc

    def signup_exists(self, email: str) -> bool:
        query = self.client.table(self.signups_table).select('email').eq('email', email).limit(1)
        result = self._execute(query, 'Duplicate check')
        return bool(result.data)

    def add_signup(self, email: str, project_name: str) -> SignupRecord:
        query = self.client.table(self.signups_table).insert([{'email': email, 'project_name': project_name}])
        result = self._execute(query, 'Insert')
        created_at = None
        if result.data:
            created_at = result.data[0].get('created_at')
        return SignupRecord(email=email, project_name=project_name, created_at=created_at)

    def add_visit(self, page_url: str, user_agent: str, project_name: str) -> None:
        query = self.client.table(self.visitors_table).insert([
            {'page_url': page_url, 'user_agent': user_agent, 'project_name': project_name}
        ])
        self._execute(query, 'Visit insert')

    def list_signups(self) -> List[SignupRecord]:
        query = self.client.table(self.signups_table).select('email, project_name, created_at').order('created_at')
        result = self._execute(query, 'Listing signups')
        return [
            SignupRecord(email=row['email'], project_name=row['project_name'], created_at=row.get('created_at'))
            for row in result.data or []
        ]

    def count_visits(self) -> int:
        query = self.client.table(self.visitors_table).select('id', count='exact').limit(1)
        result = self._execute(query, 'Counting visits')
        return int(result.count or 0)


def build_store(config) -> SignupStore:
    """Build the store selected by ``DATABASE_BACKEND`` from a config mapping."""
    backend = (config.get('DATABASE_BACKEND') or 'sqlite').lower()
    signups_table = config['SIGNUPS_TABLE']
    visitors_table = config['VISITORS_TABLE']

    if backend == 'sqlite':
        return SQLiteSignupStore(config['DATABASE_PATH'], signups_table, visitors_table)

    if backend == 'supabase':
        url = config.get('SUPABASE_URL')
        key = config.get('SUPABASE_KEY')
        if not url or not key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase backend")
        from supabase import create_client
        from supabase.lib.client_options import ClientOptions

        timeout = float(config.get('SUPABASE_TIMEOUT_SECONDS') or 10)
        logger.info("Using Supabase store at %s (timeout=%ss)", url, timeout)
        client = create_client(url, key, options=ClientOptions(postgrest_client_timeout=timeout))
        return SupabaseSignupStore(client, signups_table, visitors_table)

    raise RuntimeError(f"Unknown DATABASE_BACKEND: {backend}")
