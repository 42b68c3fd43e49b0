import csv
import os
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

os.environ.setdefault('SECRET_KEY', 'test-secret')

from scripts import admin_cli
from scripts.backup_db import BackupError, backup_database
from services.waitlist_store import SQLiteSignupStore

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def make_store(tmp_path):
    store = SQLiteSignupStore(str(tmp_path / 'waitlist.db'), 'botvault_signups', 'botvault_visitors')
    store.init_schema()
    return store


def test_export_signups_writes_csv(tmp_path, monkeypatch, capsys):
    store = make_store(tmp_path)
    store.add_signup('one@example.com', 'botvault')
    store.add_signup('two@example.com', 'botvault')
    monkeypatch.setattr(admin_cli, 'get_store', lambda: store)

    output = tmp_path / 'signups.csv'
    assert admin_cli.main(['export-signups', '--output', str(output)]) == 0

    with open(output, newline='', encoding='utf-8') as fh:
        rows = list(csv.DictReader(fh))
    assert [r['email'] for r in rows] == ['one@example.com', 'two@example.com']
    assert 'exported_rows=2' in capsys.readouterr().out


def test_count_visits(tmp_path, monkeypatch, capsys):
    store = make_store(tmp_path)
    store.add_visit('https://botvault.dev/', 'ua', 'botvault')
    monkeypatch.setattr(admin_cli, 'get_store', lambda: store)

    assert admin_cli.main(['count-visits']) == 0
    assert 'total_visits=1' in capsys.readouterr().out


def test_store_errors_exit_nonzero(tmp_path, monkeypatch):
    broken = SQLiteSignupStore(str(tmp_path / 'nowhere' / 'x.db'), 'botvault_signups', 'botvault_visitors')
    monkeypatch.setattr(admin_cli, 'get_store', lambda: broken)
    assert admin_cli.main(['list-signups']) == 1


def backup_config(tmp_path, **overrides):
    settings = dict(
        DATABASE_BACKEND='sqlite',
        DATABASE_PATH=str(tmp_path / 'waitlist.db'),
        BACKUP_DIR=str(tmp_path / 'backups'),
        PROJECT_NAME='botvault',
        S3_BACKUP_BUCKET=None,
        AWS_REGION=None,
    )
    settings.update(overrides)
    return SimpleNamespace(**settings)


def test_backup_creates_gzip(tmp_path):
    store = make_store(tmp_path)
    store.add_signup('backup@example.com', 'botvault')

    archive = backup_database(backup_config(tmp_path))
    assert archive.exists()
    assert archive.parent == tmp_path / 'backups'
    assert archive.name.endswith('.sqlite3.gz')


def test_backup_refuses_supabase_backend(tmp_path):
    with pytest.raises(BackupError) as excinfo:
        backup_database(backup_config(tmp_path, DATABASE_BACKEND='supabase'))
    assert 'sqlite' in str(excinfo.value)


def test_backup_script_reads_dotenv(tmp_path):
    store = SQLiteSignupStore(str(tmp_path / 'custom.db'), 'botvault_signups', 'botvault_visitors')
    store.init_schema()
    (tmp_path / '.env').write_text(
        'SECRET_KEY=dotenv-secret\n'
        'DATABASE_PATH=custom.db\n'
        'BACKUP_DIR=snapshots\n'
    )
    env = {
        key: value for key, value in os.environ.items()
        if key not in ('SECRET_KEY', 'DATABASE_PATH', 'DATABASE_BACKEND', 'BACKUP_DIR', 'S3_BACKUP_BUCKET')
    }

    result = subprocess.run(
        [sys.executable, str(PROJECT_ROOT / 'scripts' / 'backup_db.py')],
        cwd=tmp_path,
        env=env,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, result.stderr
    assert 'backup_created=' in result.stdout
    assert list((tmp_path / 'snapshots').glob('botvault_waitlist_*.sqlite3.gz'))
