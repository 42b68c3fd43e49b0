"""Fire-and-forget page-view tracking.

The landing page reports its own load through a beacon request, so a slow or
unavailable store never delays rendering. Both fields are client-supplied and
are stored HTML-escaped by ``bleach.clean``.
"""

from __future__ import annotations

import logging

import bleach

from services.waitlist_store import SignupStore

logger = logging.getLogger(__name__)

MAX_USER_AGENT_LENGTH = 512
MAX_PAGE_URL_LENGTH = 2048


def _clean(value: str, limit: int) -> str:
    return bleach.clean(value or '', strip=True)[:limit]


def track_visit(store: SignupStore, page_url: str, user_agent: str, project_name: str) -> bool:
    """Record one visitor row. Never raises; returns False when the write failed."""
    try:
        store.add_visit(
            _clean(page_url, MAX_PAGE_URL_LENGTH),
            _clean(user_agent, MAX_USER_AGENT_LENGTH),
            project_name,
        )
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Error tracking visitor")
        return False
