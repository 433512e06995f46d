"""ANNOUNCEMENT SERVICE"""

from datetime import datetime, timezone
import logging

from dateutil.parser import isoparse

from alumni_portal.models import ANNOUNCEMENT_COLUMNS, Announcement
from alumni_portal.utils.ledger import ANNOUNCEMENTS_SEEN_AT

logger = logging.getLogger()

ANNOUNCEMENTS_TABLE = "announcements"


class AnnouncementService:
    def __init__(self, profile_store, ledger=None, limit=200, clock=None):
        self._store = profile_store
        self._ledger = ledger
        self._limit = limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def list_published(self):
        logger.info("[SERVICE]: Getting published announcements")
        rows = self._store.select(
            ANNOUNCEMENTS_TABLE,
            {"published": True},
            order_by="published_at",
            descending=True,
            limit=self._limit,
            columns=ANNOUNCEMENT_COLUMNS,
        )
        return [Announcement.from_row(row) for row in rows]

    def seen_at(self):
        if self._ledger is None:
            return None
        value = self._ledger.get(ANNOUNCEMENTS_SEEN_AT)
        return isoparse(value) if value else None

    def unseen_count(self, announcements=None) -> int:
        if announcements is None:
            announcements = self.list_published()
        seen_at = self.seen_at()
        if seen_at is None:
            return len(announcements)
        return sum(
            1
            for announcement in announcements
            if announcement.sort_key is not None and announcement.sort_key > seen_at
        )

    def mark_seen(self, when=None):
        when = when or self._clock()
        self._ledger.put(ANNOUNCEMENTS_SEEN_AT, when.isoformat())
        return when

    def subscribe(self, callback):
        """Call ``callback`` with the reloaded list whenever the table changes."""

        def _reload(change_type, row):
            logger.debug(f"[SERVICE]: Announcement {change_type.value}, reloading")
            callback(self.list_published())

        return self._store.subscribe(ANNOUNCEMENTS_TABLE, _reload)
