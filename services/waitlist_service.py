"""Waitlist signup handling: validate, normalize, check for duplicates, insert."""

from __future__ import annotations

import logging
import re

from services.waitlist_store import DuplicateRecord, SignupRecord, SignupStore, StoreError

logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile(r'[^\s@]+@[^\s@]+\.[^\s@]+')
MAX_EMAIL_LENGTH = 254


class SignupError(Exception):
    kind = 'unexpected'
    message = 'Registration failed. Please try again.'

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class InvalidEmail(SignupError):
    kind = 'invalid-input'
    message = 'Please enter a valid email address'


class DuplicateEmail(SignupError):
    kind = 'duplicate-email'
    message = 'This email is already registered'


class PersistenceUnavailable(SignupError):
    kind = 'persistence-unavailable'
    message = 'Failed to register email. Please try again.'


class UnexpectedSignupError(SignupError):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email and len(email) <= MAX_EMAIL_LENGTH and EMAIL_REGEX.fullmatch(email))


def register_signup(store: SignupStore, raw_email: str, project_name: str) -> SignupRecord:
    """Register ``raw_email`` on the waitlist.

    Raises ``InvalidEmail`` before touching the store, ``DuplicateEmail`` when
    the address is already registered (including when a concurrent insert wins
    the race), and ``PersistenceUnavailable`` when the store fails.
    """
    candidate = (raw_email or '').strip()
    if not is_valid_email(candidate):
        raise InvalidEmail()

    email = normalize_email(candidate)

    try:
        duplicate = store.signup_exists(email)
    except StoreError as exc:
        logger.error("Error checking database for duplicate: %s", exc)
        raise PersistenceUnavailable('Registration failed. Please try again.') from exc

    if duplicate:
        raise DuplicateEmail()

    try:
        record = store.add_signup(email, project_name)
    except DuplicateRecord as exc:
        logger.info("Signup insert lost a race for an existing email")
        raise DuplicateEmail() from exc
    except StoreError as exc:
        logger.error("Error saving email to database: %s", exc)
        raise PersistenceUnavailable() from exc

    logger.info("Waitlist signup recorded for project=%s", project_name)
    return record
