import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from routine_backend.config.engine import EngineConfig
from routine_backend.config.loader import ConfigLoader
from routine_backend.core.errors import ConfigError


class TestConfigLoader(unittest.TestCase):
    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp(prefix="routine-config-"))
        self.addCleanup(shutil.rmtree, self.tmp, True)

    def test_default_file_created_and_loaded(self):
        path = self.tmp / "nested" / "config.toml"

        with mock.patch.dict(os.environ, {"DAILY_ROUTINE_TOKEN": "token-from-env"}):
            loader = ConfigLoader(str(path))
            loader.load()

        self.assertTrue(path.exists())
        self.assertEqual(loader.get("sync.debounce_ms"), 500)
        self.assertEqual(loader.get("identity.auth_token"), "token-from-env")
        self.assertEqual(loader.get("identity.namespace"), "default")
        self.assertIsNone(loader.get("missing.key"))

    def test_env_placeholder_default(self):
        path = self.tmp / "config.toml"
        path.write_text(
            '[identity]\nnamespace = "${ROUTINE_TEST_NAMESPACE_UNSET:fallback}"\n',
            encoding="utf-8",
        )

        loader = ConfigLoader(str(path))
        loader.load()

        self.assertEqual(loader.get("identity.namespace"), "fallback")

    def test_yaml_config(self):
        path = self.tmp / "config.yaml"
        path.write_text("sync:\n  debounce_ms: 250\n", encoding="utf-8")

        loader = ConfigLoader(str(path))
        loader.load()

        self.assertEqual(loader.get("sync.debounce_ms"), 250)

    def test_set_persists_nested_key(self):
        path = self.tmp / "config.toml"
        path.write_text("", encoding="utf-8")
        loader = ConfigLoader(str(path))
        loader.load()

        self.assertTrue(loader.set("template.file", "/tmp/routine.yaml"))

        reloaded = ConfigLoader(str(path))
        reloaded.load()
        self.assertEqual(reloaded.get("template.file"), "/tmp/routine.yaml")


class TestEngineConfig(unittest.TestCase):
    def _loader(self, content):
        tmp = Path(tempfile.mkdtemp(prefix="routine-engine-config-"))
        self.addCleanup(shutil.rmtree, tmp, True)
        path = tmp / "config.toml"
        path.write_text(content, encoding="utf-8")
        loader = ConfigLoader(str(path))
        loader.load()
        return loader

    def test_values_threaded_from_loader(self):
        loader = self._loader(
            "[store]\npath = '/data/routine.db'\n"
            "[identity]\nauth_token = ' abc-token-1 '\nnamespace = 'home'\n"
            "[sync]\ndebounce_ms = 750\n"
        )

        config = EngineConfig.from_loader(loader)

        self.assertEqual(config.store_path, "/data/routine.db")
        self.assertEqual(config.auth_token, "abc-token-1")
        self.assertEqual(config.namespace, "home")
        self.assertAlmostEqual(config.debounce_seconds, 0.75)
        self.assertIsNone(config.template_file)

    def test_defaults_for_empty_file(self):
        config = EngineConfig.from_loader(self._loader(""))

        self.assertIsNone(config.auth_token)
        self.assertEqual(config.namespace, "default")
        self.assertAlmostEqual(config.debounce_seconds, 0.5)
        self.assertTrue(config.store_path.endswith("routine.db"))

    def test_bad_debounce_rejected(self):
        for value in ("'soon'", "-5"):
            with self.assertRaises(ConfigError):
                EngineConfig.from_loader(self._loader(f"[sync]\ndebounce_ms = {value}\n"))


if __name__ == "__main__":
    unittest.main(verbosity=2)
