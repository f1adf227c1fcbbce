import sqlite3
import unittest

from routine_backend.core.errors import IdentityRequiredError, SubscriptionError
from routine_backend.core.merger import merge
from routine_backend.core.sqls import queries
from routine_backend.sync.store import RecordStore

from support import TempDatabaseMixin, make_template, settle

DATE = "2024-01-01"


class FailingWriteStore(RecordStore):
    def write(self, identity, date, document):
        raise sqlite3.OperationalError("database is locked")


class TestLocalSyncChannel(TempDatabaseMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.channel, self.store = self.make_channel()
        self.template = make_template("Wake", "Study", "Sleep")
        self.snapshots = []
        self.errors = []

    def _subscribe(self, date=DATE, identity="anon-1"):
        return self.channel.subscribe(identity, date, self.snapshots.append, self.errors.append)

    async def test_initial_snapshot_of_missing_record_is_none(self):
        self._subscribe()
        await settle()

        self.assertEqual(self.snapshots, [None])

    async def test_persist_is_full_overwrite_and_reaches_subscriber(self):
        self._subscribe()
        schedule = merge(self.template, None)
        schedule[1].is_done = True

        outcome = await self.channel.persist("anon-1", DATE, schedule)
        await settle()

        self.assertTrue(outcome.success)
        self.assertEqual(outcome.revision, 1)
        self.assertEqual(len(self.snapshots), 2)
        delivered = self.snapshots[1]
        self.assertEqual([r.description for r in delivered], ["Wake", "Study", "Sleep"])
        self.assertTrue(delivered[1].is_done)

        stored = self.store.read("anon-1", DATE)
        self.assertEqual(len(stored.document["activities"]), 3)
        self.assertEqual(stored.document["activities"][1]["isDone"], True)

        # second write replaces the whole document
        outcome = await self.channel.persist("anon-1", DATE, schedule[:1])
        self.assertEqual(outcome.revision, 2)
        self.assertEqual(len(self.store.read("anon-1", DATE).document["activities"]), 1)

    async def test_snapshots_arrive_in_write_order(self):
        self._subscribe()
        for comment in ("one", "two", "three"):
            schedule = merge(self.template, None)
            schedule[0].comment = comment
            await self.channel.persist("anon-1", DATE, schedule)
        await settle()

        self.assertEqual([s[0].comment for s in self.snapshots[1:]], ["one", "two", "three"])

    async def test_unsubscribe_discards_queued_callbacks(self):
        subscription = self._subscribe()
        await self.channel.persist("anon-1", DATE, merge(self.template, None))

        # initial read and change are queued but not delivered yet
        subscription.unsubscribe()
        await settle()

        self.assertEqual(self.snapshots, [])
        self.assertEqual(self.store.watcher_count("anon-1", DATE), 0)
        subscription.unsubscribe()

    async def test_other_dates_and_identities_are_isolated(self):
        self._subscribe()
        await settle()

        await self.channel.persist("anon-1", "2024-01-02", merge(self.template, None))
        await self.channel.persist("anon-2", DATE, merge(self.template, None))
        await settle()

        self.assertEqual(self.snapshots, [None])

    async def test_refresh_picks_up_write_from_another_store(self):
        self._subscribe()
        await settle()

        # a second store on the same file stands in for another process
        other = RecordStore(self.store.db, self.store.namespace)
        schedule = merge(self.template, None)
        schedule[2].comment = "from elsewhere"
        other.write("anon-1", DATE, {"activities": [r.model_dump() for r in schedule]})
        await settle()
        self.assertEqual(self.snapshots, [None])

        self.store.refresh("anon-1", DATE)
        await settle()

        self.assertEqual(self.snapshots[1][2].comment, "from elsewhere")

    async def test_stored_nulls_and_missing_labels_read_as_defaults(self):
        self._subscribe()
        self.store.write(
            "anon-1",
            DATE,
            {
                "activities": [
                    {"timeLabel": "6:00", "description": "Wake", "comment": None, "isDone": True},
                    {"description": "Study", "isDone": None},
                    {"description": "Obsolete", "isDone": True},
                ]
            },
        )
        await settle()

        self.assertEqual(self.errors, [])
        wake, study, obsolete = self.snapshots[1]
        self.assertEqual(wake.comment, "")
        self.assertTrue(wake.is_done)
        self.assertFalse(study.is_done)
        self.assertEqual(obsolete.time_label, "")

    async def test_entries_without_description_are_skipped(self):
        self._subscribe()
        self.store.write(
            "anon-1",
            DATE,
            {"activities": [{"description": 5}, {"isDone": True}, "Wake", {"description": "Wake"}]},
        )
        await settle()

        self.assertEqual(self.errors, [])
        self.assertEqual([r.description for r in self.snapshots[1]], ["Wake"])

    async def test_document_without_activities_list_reported_as_subscription_error(self):
        self._subscribe()
        self.store.write("anon-1", DATE, {"activities": "Wake"})
        await settle()

        self.assertEqual(self.snapshots, [None])
        self.assertEqual(len(self.errors), 1)
        self.assertIsInstance(self.errors[0], SubscriptionError)

    async def test_corrupt_stored_row_reported_as_subscription_error(self):
        self.store.db.execute_update(
            queries.UPSERT_ROUTINE_RECORD,
            (self.store.namespace, "anon-1", DATE, "{not json", "2024-01-01T00:00:00"),
        )

        subscription = self._subscribe()
        await settle()

        self.assertEqual(self.snapshots, [])
        self.assertIsInstance(self.errors[0], SubscriptionError)
        self.assertIn("not valid JSON", str(self.errors[0]))

        # the feed stays open so a repairing write is still delivered
        await self.channel.persist("anon-1", DATE, merge(self.template, None))
        await settle()
        self.assertEqual(len(self.snapshots), 1)

        subscription.unsubscribe()
        self.assertEqual(self.store.watcher_count("anon-1", DATE), 0)

    async def test_feed_failure_is_wrapped(self):
        self._subscribe()
        self.store.report_error("anon-1", DATE, sqlite3.OperationalError("disk I/O error"))
        await settle()

        self.assertIsInstance(self.errors[0], SubscriptionError)
        self.assertIn("disk I/O error", str(self.errors[0]))

    async def test_persist_failure_reported_not_raised(self):
        channel, _ = self.make_channel(store_class=FailingWriteStore)

        outcome = await channel.persist("anon-1", DATE, merge(self.template, None))

        self.assertFalse(outcome.success)
        self.assertIn("database is locked", str(outcome.error))

    async def test_identity_required(self):
        with self.assertRaises(IdentityRequiredError):
            self._subscribe(identity=None)
        with self.assertRaises(IdentityRequiredError):
            await self.channel.persist("", DATE, [])


if __name__ == "__main__":
    unittest.main(verbosity=2)
