"""Tests for the tier-based retention sweep."""

from __future__ import annotations

import datetime
import unittest
from unittest.mock import MagicMock, patch

from google.api_core.exceptions import RetryError, ServiceUnavailable
from mockfirestore import MockFirestore

from boredgamer import create_app
from boredgamer.core.tiers import TIER_POLICIES, Tier, policy_for
from boredgamer.errors import StoreError
from boredgamer.retention import RetentionSweeper

from mock_utils import MockBatch, MockFirestoreBuilder, attach_mock_writes, patch_mockfirestore

patch_mockfirestore()

NOW = datetime.datetime(2024, 6, 1, 12, 0, tzinfo=datetime.timezone.utc)


def days_ago(days: int) -> datetime.datetime:
    return NOW - datetime.timedelta(days=days)


class TierPolicyTestCase(unittest.TestCase):
    """Test case for the tier policy table."""

    def test_retention_days_per_tier(self) -> None:
        self.assertEqual(policy_for("enterprise").retention_days, 365)
        self.assertEqual(policy_for("professional").retention_days, 90)
        self.assertEqual(policy_for("independent").retention_days, 30)

    def test_unset_or_unknown_tier_is_free(self) -> None:
        self.assertEqual(policy_for(None), TIER_POLICIES[Tier.FREE])
        self.assertEqual(policy_for("ecosystem").retention_days, 7)

    def test_policy_table_is_read_only(self) -> None:
        with self.assertRaises(TypeError):
            TIER_POLICIES[Tier.FREE] = TIER_POLICIES[Tier.ENTERPRISE]  # type: ignore[index]


class RetentionSweeperTestCase(unittest.TestCase):
    """Test case for RetentionSweeper using mockfirestore."""

    def setUp(self) -> None:
        self.db = MockFirestore()
        attach_mock_writes(self.db)
        patcher = patch(
            "boredgamer.retention.services.firestore",
            new=MockFirestoreBuilder.firestore_module(self.db),
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.sweeper = RetentionSweeper(self.db)

    def _add_studio(self, studio_id: str, tier: str | None = None) -> None:
        data = {"name": studio_id}
        if tier is not None:
            data["tier"] = tier
        self.db.collection("studios").document(studio_id).set(data)

    def _add_event(self, event_id: str, studio_id: str, age_days: int) -> None:
        self.db.collection("events").document(event_id).set(
            {"studioId": studio_id, "timestamp": days_ago(age_days), "type": "login"}
        )

    def _event_ids(self) -> set[str]:
        return {doc.id for doc in self.db.collection("events").stream() if doc.exists}

    def test_professional_retention_boundary(self) -> None:
        """91-day-old events are deleted, 89-day-old events are kept."""
        self._add_studio("studio_pro", "professional")
        self._add_event("old", "studio_pro", 91)
        self._add_event("recent", "studio_pro", 89)

        report = self.sweeper.sweep(now=NOW)

        self.assertEqual(self._event_ids(), {"recent"})
        self.assertEqual(report.events_deleted, 1)
        self.assertEqual(report.batches, 1)

    def test_free_tier_keeps_one_week(self) -> None:
        self._add_studio("studio_free")
        self._add_event("eight_days", "studio_free", 8)
        self._add_event("six_days", "studio_free", 6)

        self.sweeper.sweep(now=NOW)

        self.assertEqual(self._event_ids(), {"six_days"})

    def test_sweep_only_touches_own_studio_events(self) -> None:
        self._add_studio("studio_ind", "independent")
        self._add_studio("studio_ent", "enterprise")
        self._add_event("ind_old", "studio_ind", 45)
        self._add_event("ent_old", "studio_ent", 45)

        self.sweeper.sweep(now=NOW)

        self.assertEqual(self._event_ids(), {"ent_old"})

    def test_sweep_clears_large_backlog_in_bounded_batches(self) -> None:
        """1200 expired events take exactly three batch deletes."""
        self._add_studio("studio_pro", "professional")
        for i in range(1200):
            self._add_event(f"e{i:04d}", "studio_pro", 120)

        batches: list[MockBatch] = []

        def make_batch() -> MockBatch:
            batch = MockBatch(self.db)
            batches.append(batch)
            return batch

        self.db.batch = MagicMock(side_effect=make_batch)

        report = self.sweeper.sweep(now=NOW)

        self.assertEqual(report.batches, 3)
        self.assertEqual(report.events_deleted, 1200)
        self.assertEqual([len(b.updates) for b in batches], [500, 500, 200])
        self.assertEqual(self._event_ids(), set())

        second = self.sweeper.sweep(now=NOW)

        self.assertEqual(second.events_deleted, 0)
        self.assertEqual(second.batches, 0)
        self.assertEqual(self.db.batch.call_count, 3)

    def test_failure_for_one_studio_does_not_stop_others(self) -> None:
        """A commit failure for studio A still lets studio B be swept."""
        self._add_studio("studio_a", "independent")
        self._add_studio("studio_b", "independent")
        self._add_event("a_old", "studio_a", 40)
        self._add_event("b_old", "studio_b", 40)

        class FailingBatch(MockBatch):
            def __init__(self, db) -> None:
                super().__init__(db)
                self.commit = MagicMock(side_effect=self._commit_or_fail)

            def _commit_or_fail(self) -> None:
                for ref, _ in self.updates:
                    if ref.get().to_dict().get("studioId") == "studio_a":
                        raise ServiceUnavailable("Firestore unavailable")
                self._real_commit()

        self.db.batch = MagicMock(side_effect=lambda: FailingBatch(self.db))

        with self.assertLogs(level="ERROR"):
            report = self.sweeper.sweep(now=NOW)

        self.assertEqual(report.failed_studios, ["studio_a"])
        self.assertEqual(report.studios_processed, 2)
        self.assertEqual(self._event_ids(), {"a_old"})

    def test_store_error_is_isolated_per_studio(self) -> None:
        self._add_studio("studio_a", "independent")
        self._add_studio("studio_b", "independent")
        self._add_event("b_old", "studio_b", 40)

        original = self.sweeper.purge_studio

        def purge(studio_id, cutoff):
            if studio_id == "studio_a":
                raise StoreError()
            return original(studio_id, cutoff)

        with patch.object(self.sweeper, "purge_studio", side_effect=purge):
            report = self.sweeper.sweep(now=NOW)

        self.assertEqual(report.failed_studios, ["studio_a"])
        self.assertEqual(self._event_ids(), set())

    def test_exhausted_retries_are_isolated_per_studio(self) -> None:
        """A RetryError for studio A still lets studio B be swept."""
        self._add_studio("studio_a", "independent")
        self._add_studio("studio_b", "independent")
        self._add_event("a_old", "studio_a", 40)
        self._add_event("b_old", "studio_b", 40)

        original = self.sweeper.purge_studio

        def purge(studio_id, cutoff):
            if studio_id == "studio_a":
                raise RetryError(
                    "Timeout of 60.0s exceeded", ServiceUnavailable("down")
                )
            return original(studio_id, cutoff)

        with patch.object(self.sweeper, "purge_studio", side_effect=purge):
            with self.assertLogs(level="ERROR"):
                report = self.sweeper.sweep(now=NOW)

        self.assertEqual(report.failed_studios, ["studio_a"])
        self.assertEqual(self._event_ids(), {"a_old"})

    def test_studio_listing_is_read_before_purging(self) -> None:
        """No studio query stream is held open while events are purged."""
        self._add_studio("studio_a", "independent")
        self._add_studio("studio_b", "independent")
        self._add_event("b_old", "studio_b", 40)

        studios = self.db.collection("studios")
        listing = {"done": False}

        def stream_studios():
            yield from studios.stream()
            listing["done"] = True

        real_collection = self.db.collection

        def collection(name):
            if name == "studios":
                fake = MagicMock()
                fake.stream.side_effect = stream_studios
                return fake
            return real_collection(name)

        original = self.sweeper.purge_studio

        def purge(studio_id, cutoff):
            self.assertTrue(listing["done"])
            return original(studio_id, cutoff)

        with patch.object(self.db, "collection", side_effect=collection), patch.object(
            self.sweeper, "purge_studio", side_effect=purge
        ):
            report = self.sweeper.sweep(now=NOW)

        self.assertEqual(report.studios_processed, 2)
        self.assertEqual(self._event_ids(), set())

    def test_cutoff_uses_calendar_days(self) -> None:
        self.assertEqual(
            RetentionSweeper.cutoff_for("enterprise", NOW), days_ago(365)
        )

    def test_batch_size_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            RetentionSweeper(self.db, batch_size=0)


class SweepEventsCommandTestCase(unittest.TestCase):
    """Test case for the sweep-events CLI command."""

    def setUp(self) -> None:
        self.db = MockFirestore()
        attach_mock_writes(self.db)
        patcher = patch(
            "boredgamer.retention.services.firestore",
            new=MockFirestoreBuilder.firestore_module(self.db),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        self.app = create_app({"TESTING": True, "RETENTION_BATCH_SIZE": 2})
        self.app.extensions["firestore"] = self.db

    def test_command_runs_a_sweep(self) -> None:
        self.db.collection("studios").document("studio1").set({"tier": "independent"})
        old = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(days=60)
        for i in range(3):
            self.db.collection("events").document(f"e{i}").set(
                {"studioId": "studio1", "timestamp": old}
            )

        result = self.app.test_cli_runner().invoke(args=["sweep-events"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("3 events deleted in 2 batches", result.output)

    def test_command_fails_when_a_studio_fails(self) -> None:
        self.db.collection("studios").document("studio1").set({"tier": "independent"})

        with patch(
            "boredgamer.retention.services.RetentionSweeper.purge_studio",
            side_effect=ServiceUnavailable("down"),
        ):
            result = self.app.test_cli_runner().invoke(args=["sweep-events"])

        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
