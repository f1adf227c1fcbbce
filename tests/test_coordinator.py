import unittest

from routine_backend.config.engine import EngineConfig
from routine_backend.core.coordinator import RoutineCoordinator
from routine_backend.core.errors import IdentityResolutionError
from routine_backend.core.events import SYNC_ERROR
from routine_backend.core.models import SyncState
from routine_backend.sync.store import RecordStore

from support import QUIET_WINDOW, TempDatabaseMixin, make_template, settle

DAY = "2024-03-10"


class RejectingProvider:
    async def current_identity(self):
        return None

    async def exchange_token(self, token):
        raise IdentityResolutionError("token rejected")

    async def create_anonymous(self):
        raise AssertionError("anonymous fallback must not run after a rejected token")


class TestRoutineCoordinator(TempDatabaseMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.make_database()
        self.config = EngineConfig(
            store_path=str(self._tmp_dir / "engine.db"),
            namespace="coordinator-test",
            debounce_seconds=QUIET_WINDOW,
        )

    def _coordinator(self, **kwargs):
        kwargs.setdefault("template", make_template("Wake", "Study", "Sleep"))
        return RoutineCoordinator(self.config, **kwargs)

    async def test_start_resolves_identity_and_goes_live(self):
        coordinator = self._coordinator()
        self.assertEqual(coordinator.mode, SyncState.IDLE)

        session = await coordinator.start(DAY)
        self.assertEqual(coordinator.mode, SyncState.SUBSCRIBING)
        await settle()

        self.assertEqual(coordinator.mode, SyncState.LIVE)
        self.assertTrue(session.identity.startswith("anon-"))
        self.assertEqual(len(session.current_schedule), 3)
        self.assertTrue(coordinator.get_stats()["sync_enabled"])

        await coordinator.stop()

    async def test_identity_is_reused_by_next_session(self):
        first = self._coordinator()
        identity = (await first.start(DAY)).identity
        await first.stop()

        second = self._coordinator()
        self.assertEqual((await second.start(DAY)).identity, identity)
        await second.stop()

    async def test_stop_flushes_pending_comment(self):
        coordinator = self._coordinator()
        session = await coordinator.start(DAY)
        await settle()
        session.update_comment(1, "last words")

        await coordinator.stop()

        store = RecordStore(coordinator.db, self.config.namespace)
        stored = store.read(session.identity, DAY)
        self.assertEqual(stored.document["activities"][1]["comment"], "last words")
        self.assertEqual(coordinator.mode, SyncState.STOPPED)
        self.assertFalse(coordinator.is_running)

    async def test_identity_failure_falls_back_to_template_only(self):
        coordinator = self._coordinator(provider=RejectingProvider())
        coordinator.config = EngineConfig(
            store_path=self.config.store_path, auth_token="bad-token-123"
        )
        notices = []
        coordinator.emitter.on(SYNC_ERROR, notices.append)

        session = await coordinator.start(DAY)

        self.assertEqual(coordinator.mode, SyncState.OFFLINE)
        self.assertFalse(session.sync_enabled)
        self.assertEqual(len(session.current_schedule), 3)
        self.assertIn("token rejected", session.last_error)
        self.assertEqual(notices[0]["data"]["kind"], "identity")

        self.assertIsNone(session.toggle_activity(0))
        self.assertTrue(session.current_schedule[0].is_done)

    async def test_unusable_store_falls_back_to_template_only(self):
        coordinator = self._coordinator()
        self._tmp_dir.joinpath("not-a-dir").write_text("file", encoding="utf-8")
        coordinator.config = EngineConfig(store_path=str(self._tmp_dir / "not-a-dir" / "x.db"))

        session = await coordinator.start(DAY)

        self.assertEqual(coordinator.mode, SyncState.OFFLINE)
        self.assertIn("Record store unavailable", session.last_error)

    async def test_start_twice_returns_same_session(self):
        coordinator = self._coordinator()
        session = await coordinator.start(DAY)

        self.assertIs(await coordinator.start("2024-03-11"), session)
        self.assertEqual(session.current_date, DAY)
        await coordinator.stop()

    async def test_require_session_before_start(self):
        with self.assertRaises(RuntimeError):
            self._coordinator().require_session()


if __name__ == "__main__":
    unittest.main(verbosity=2)
