"""Service layer for the tier-based event retention sweep."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Optional, cast

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError

from boredgamer.core.constants import (
    EVENTS_COLLECTION,
    RETENTION_BATCH_SIZE,
    STUDIOS_COLLECTION,
)
from boredgamer.core.tiers import policy_for
from boredgamer.errors import StoreError
from boredgamer.extensions import translate_store_errors

from .models import Studio, SweepReport

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


class RetentionSweeper:
    """Deletes events older than each studio's tier allows.

    Events are removed in batches of at most ``batch_size`` documents, one
    committed ``WriteBatch`` per query page, until a studio has nothing left
    past its cutoff. A batch commit is atomic; a full studio purge is not, so
    an interrupted sweep simply leaves work for the next run.
    """

    def __init__(self, db: Client, batch_size: int = RETENTION_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be positive.")
        self.db = db
        self.batch_size = batch_size

    @staticmethod
    def cutoff_for(
        tier: Optional[str], now: datetime.datetime
    ) -> datetime.datetime:
        """Return the oldest timestamp a studio on ``tier`` may keep."""
        return now - datetime.timedelta(days=policy_for(tier).retention_days)

    @translate_store_errors
    def sweep(self, now: Optional[datetime.datetime] = None) -> SweepReport:
        """Run one retention pass over every studio."""
        now = now or datetime.datetime.now(datetime.timezone.utc)
        report = SweepReport()

        studios = list(self.db.collection(STUDIOS_COLLECTION).stream())
        for studio in studios:
            report.studios_processed += 1
            data = cast(Studio, studio.to_dict() or {})
            tier = data.get("tier")
            cutoff = self.cutoff_for(tier, now)
            try:
                deleted, batches = self.purge_studio(studio.id, cutoff)
            except (GoogleAPIError, StoreError) as e:
                logging.error(f"Retention sweep failed for studio {studio.id}: {e}")
                report.failed_studios.append(studio.id)
                continue

            report.events_deleted += deleted
            report.batches += batches
            if deleted:
                logging.info(
                    f"Deleted {deleted} event(s) older than {cutoff.isoformat()} "
                    f"for studio {studio.id} ({tier or 'free'} tier)."
                )

        logging.info(
            f"Retention sweep finished: {report.studios_processed} studios, "
            f"{report.events_deleted} events deleted in {report.batches} batches, "
            f"{len(report.failed_studios)} failed."
        )
        return report

    def purge_studio(
        self, studio_id: str, cutoff: datetime.datetime
    ) -> tuple[int, int]:
        """Delete a studio's events older than ``cutoff``.

        Returns the number of deleted events and committed batches.
        """
        query = (
            self.db.collection(EVENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("studioId", "==", studio_id))
            .where(filter=firestore.FieldFilter("timestamp", "<", cutoff))
            .limit(self.batch_size)
        )

        deleted = 0
        batches = 0
        while True:
            docs = list(query.stream())
            if not docs:
                break

            batch = self.db.batch()
            for doc in docs:
                batch.delete(doc.reference)
            batch.commit()

            deleted += len(docs)
            batches += 1
        return deleted, batches
