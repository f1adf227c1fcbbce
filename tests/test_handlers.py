import unittest

from fastapi.testclient import TestClient
from pydantic import ValidationError

from routine_backend.app import create_app
from routine_backend.config import reset_config
from routine_backend.config.engine import EngineConfig
from routine_backend.core import coordinator as coordinator_module
from routine_backend.core.coordinator import RoutineCoordinator
from routine_backend.handlers import get_registered_handlers, routine
from routine_backend.models import (
    GetRoutineStateRequest,
    SelectDateRequest,
    ToggleActivityRequest,
    UpdateCommentRequest,
)
from routine_backend.system.runtime import get_runtime_status, start_runtime, stop_runtime

from support import QUIET_WINDOW, TempDatabaseMixin, make_template, settle

DAY = "2024-05-01"


class TestRoutineHandlers(TempDatabaseMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.make_database()
        config = EngineConfig(
            store_path=str(self._tmp_dir / "handlers.db"),
            namespace="handlers-test",
            debounce_seconds=QUIET_WINDOW,
        )
        self.coordinator = RoutineCoordinator(config, template=make_template("Wake", "Study"))
        coordinator_module._coordinator = self.coordinator
        self.addCleanup(coordinator_module.reset_coordinator)

        await self.coordinator.start(DAY)
        await settle()

    async def asyncTearDown(self):
        await self.coordinator.stop(quiet=True)

    async def test_state_uses_camel_case(self):
        response = await routine.get_routine_state(GetRoutineStateRequest())

        self.assertTrue(response["success"])
        data = response["data"]
        self.assertEqual(data["date"], DAY)
        self.assertEqual(data["syncState"], "live")
        self.assertEqual(data["activities"][0]["timeLabel"], "6:00")
        self.assertIn("details", data["activities"][0])

    async def test_state_without_details(self):
        response = await routine.get_routine_state(
            GetRoutineStateRequest.model_validate({"includeDetails": False})
        )

        self.assertNotIn("details", response["data"]["activities"][0])

    async def test_toggle_and_comment(self):
        response = await routine.toggle_activity(ToggleActivityRequest(index=1))
        self.assertTrue(response["data"]["activities"][1]["isDone"])
        self.assertEqual(response["data"]["completedCount"], 1)

        response = await routine.update_comment(
            UpdateCommentRequest.model_validate({"index": 0, "text": "up at six"})
        )
        self.assertEqual(response["data"]["activities"][0]["comment"], "up at six")
        self.assertTrue(response["data"]["saving"])

    async def test_out_of_range_index_reported(self):
        response = await routine.toggle_activity(ToggleActivityRequest(index=5))

        self.assertFalse(response["success"])
        self.assertIn("out of range", response["error"])

    async def test_select_date_returns_stale_view(self):
        response = await routine.select_date(SelectDateRequest(date="2024-05-02"))

        self.assertTrue(response["data"]["stale"])
        self.assertEqual(response["data"]["activities"], [])

        await settle()
        response = await routine.get_routine_state(GetRoutineStateRequest())
        self.assertFalse(response["data"]["stale"])

    async def test_retry_without_failure(self):
        response = await routine.retry_persist()

        self.assertFalse(response["success"])

    async def test_sync_status(self):
        response = await routine.get_sync_status()

        self.assertEqual(response["data"]["mode"], "live")
        self.assertEqual(response["data"]["current_date"], DAY)


class TestRequestModels(unittest.TestCase):
    def test_invalid_bodies_rejected(self):
        with self.assertRaises(ValidationError):
            SelectDateRequest(date="2024-02-31")
        with self.assertRaises(ValidationError):
            ToggleActivityRequest(index=-1)
        with self.assertRaises(ValidationError):
            UpdateCommentRequest.model_validate({"index": 0, "text": "x", "extra": 1})


class TestRouteRegistration(unittest.TestCase):
    def test_handlers_mounted_under_api_prefix(self):
        app = create_app(manage_runtime=False)
        paths = {route.path for route in app.routes}

        for name in get_registered_handlers():
            self.assertIn(f"/api/{name}", paths)
        self.assertIn("/api/toggle_activity", paths)
        self.assertIn("/health", paths)

    def test_health_endpoint(self):
        with TestClient(create_app(manage_runtime=False)) as client:
            response = client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy"})


class TestRuntime(TempDatabaseMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.make_database()
        self.config_file = self._tmp_dir / "config.toml"
        self.config_file.write_text(
            f"[store]\npath = '{self._tmp_dir / 'runtime.db'}'\n"
            "[identity]\nnamespace = 'runtime-test'\n"
            "[sync]\ndebounce_ms = 50\n",
            encoding="utf-8",
        )
        reset_config()
        coordinator_module.reset_coordinator()
        self.addCleanup(reset_config)
        self.addCleanup(coordinator_module.reset_coordinator)

    async def test_start_and_stop(self):
        coordinator = await start_runtime(str(self.config_file), date=DAY)

        self.assertTrue(coordinator.is_running)
        self.assertIs(await start_runtime(str(self.config_file)), coordinator)
        self.assertEqual(get_runtime_status()["current_date"], DAY)
        self.assertAlmostEqual(coordinator.config.debounce_seconds, 0.05)

        await stop_runtime(quiet=True)

        self.assertFalse(get_runtime_status()["is_running"])
        self.assertEqual(get_runtime_status()["mode"], "stopped")


if __name__ == "__main__":
    unittest.main(verbosity=2)
