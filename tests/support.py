import asyncio
import shutil
import tempfile
from pathlib import Path

from routine_backend.core.db import DatabaseManager
from routine_backend.core.models import ActivityTemplate
from routine_backend.core.template import TemplateStore
from routine_backend.sync.channel import LocalSyncChannel
from routine_backend.sync.store import RecordStore

QUIET_WINDOW = 0.05


def make_template(*descriptions):
    return TemplateStore(
        ActivityTemplate(time_label=f"{hour}:00", description=description, details=f"about {description}")
        for hour, description in enumerate(descriptions, start=6)
    )


async def settle(seconds=0.01):
    """Let queued loop callbacks and short timers run"""
    await asyncio.sleep(seconds)
    await asyncio.sleep(0)


class TempDatabaseMixin:
    """Fresh SQLite file per test"""

    def make_database(self):
        self._tmp_dir = Path(tempfile.mkdtemp(prefix="routine-test-"))
        self.addCleanup(shutil.rmtree, self._tmp_dir, True)
        return DatabaseManager(str(self._tmp_dir / "routine.db"))

    def make_channel(self, db=None, namespace="test", store_class=RecordStore):
        db = db or self.make_database()
        store = store_class(db, namespace)
        return LocalSyncChannel(store), store
