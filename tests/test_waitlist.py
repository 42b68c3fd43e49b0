"""End-to-end waitlist submissions through the form and JSON routes."""

import os
import tempfile

import pytest

os.environ.setdefault('SECRET_KEY', 'test-secret')

from app import app, get_store, init_db
from services.waitlist_store import StoreError


@pytest.fixture
def client():
    db_fd, db_path = tempfile.mkstemp()
    app.config.update(
        DATABASE_BACKEND='sqlite',
        DATABASE_PATH=db_path,
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        SESSION_COOKIE_SECURE=False,
        VISITOR_TRACKING_ENABLED=False,
        SUBMIT_COOLDOWN_SECONDS=0,
        TOAST_TIMEOUT_SECONDS=3,
    )
    with app.app_context():
        init_db()
    with app.test_client() as c:
        yield c
    os.close(db_fd)
    os.unlink(db_path)


class RecordingStore:
    def __init__(self):
        self.calls = []

    def signup_exists(self, email):
        self.calls.append(('exists', email))
        return False

    def add_signup(self, email, project_name):
        self.calls.append(('insert', email))


class InsertFailingStore(RecordingStore):
    def add_signup(self, email, project_name):
        self.calls.append(('insert', email))
        raise StoreError('connection refused')


class CheckFailingStore(RecordingStore):
    def signup_exists(self, email):
        self.calls.append(('exists', email))
        raise StoreError('timeout')


def stored_emails():
    return [record.email for record in get_store().list_signups()]


def test_form_signup_success_clears_input_and_shows_toast(client):
    resp = client.post('/waitlist', data={'email': 'Founder@Example.com'}, follow_redirects=True)
    assert resp.status_code == 200
    assert b'Successfully registered!' in resp.data
    assert b'class="toast toast-success"' in resp.data
    assert b'name="email" placeholder="Enter your email" value=""' in resp.data
    assert stored_emails() == ['founder@example.com']


def test_toast_disappears_after_timeout(client):
    client.post('/waitlist', data={'email': 'toast@example.com'})
    with client.session_transaction() as sess:
        assert sess['toast']['kind'] == 'success'
        sess['toast']['expires_at'] = 0
        sess.modified = True
    resp = client.get('/')
    assert b'Successfully registered!' not in resp.data
    with client.session_transaction() as sess:
        assert 'toast' not in sess


def test_invalid_email_is_rejected_without_store_call(client, monkeypatch):
    store = RecordingStore()
    monkeypatch.setattr('app.get_store', lambda: store)
    for bad in ['', 'plainaddress', 'user@domain', 'user@@example.com', 'us er@example.com']:
        resp = client.post('/api/waitlist', json={'email': bad})
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Please enter a valid email address'
    assert store.calls == []


def test_invalid_email_form_keeps_input(client):
    resp = client.post('/waitlist', data={'email': 'not-an-email'}, follow_redirects=True)
    assert b'Please enter a valid email address' in resp.data
    assert b'value="not-an-email"' in resp.data
    assert stored_emails() == []


def test_duplicate_email_is_rejected_without_second_insert(client):
    first = client.post('/api/waitlist', json={'email': 'repeat@example.com'})
    assert first.status_code == 201
    assert first.get_json()['ok'] is True

    second = client.post('/api/waitlist', json={'email': 'repeat@example.com'})
    assert second.status_code == 409
    assert second.get_json()['message'] == 'This email is already registered'
    assert stored_emails() == ['repeat@example.com']


def test_email_case_is_normalized(client):
    client.post('/api/waitlist', json={'email': 'A@B.com'})
    resp = client.post('/api/waitlist', json={'email': 'a@b.com'})
    assert resp.status_code == 409
    assert stored_emails() == ['a@b.com']


def test_insert_failure_surfaces_error(client, monkeypatch):
    store = InsertFailingStore()
    monkeypatch.setattr('app.get_store', lambda: store)
    resp = client.post('/waitlist', data={'email': 'down@example.com'}, follow_redirects=True)
    assert resp.status_code == 200
    assert b'Failed to register email. Please try again.' in resp.data
    assert b'class="toast toast-error"' in resp.data
    assert store.calls == [('exists', 'down@example.com'), ('insert', 'down@example.com')]


def test_duplicate_check_failure_skips_insert(client, monkeypatch):
    store = CheckFailingStore()
    monkeypatch.setattr('app.get_store', lambda: store)
    resp = client.post('/api/waitlist', json={'email': 'slow@example.com'})
    assert resp.status_code == 503
    assert resp.get_json()['message'] == 'Registration failed. Please try again.'
    assert store.calls == [('exists', 'slow@example.com')]


def test_cooldown_suppresses_resubmission(client):
    app.config['SUBMIT_COOLDOWN_SECONDS'] = 3
    first = client.post('/api/waitlist', json={'email': 'first@example.com'})
    assert first.status_code == 201
    assert first.get_json()['cooldown_seconds'] == 3

    second = client.post('/api/waitlist', json={'email': 'second@example.com'})
    assert second.status_code == 429
    assert second.get_json()['message'] == 'Please wait a moment before submitting again.'
    assert stored_emails() == ['first@example.com']

    page = client.get('/')
    assert b'Email successfully registered!' in page.data


def test_non_string_email_payload_is_invalid(client):
    resp = client.post('/api/waitlist', json={'email': ['x@example.com']})
    assert resp.status_code == 400


def test_form_cooldown_shows_error_toast_and_disabled_button(client):
    app.config['SUBMIT_COOLDOWN_SECONDS'] = 3
    client.post('/waitlist', data={'email': 'first@example.com'})

    resp = client.post('/waitlist', data={'email': 'second@example.com'}, follow_redirects=True)
    assert resp.status_code == 200
    assert b'Please wait a moment before submitting again.' in resp.data
    assert b'class="toast toast-error"' in resp.data
    assert b'disabled>' in resp.data
    assert b'Email successfully registered!' in resp.data
    assert stored_emails() == ['first@example.com']
