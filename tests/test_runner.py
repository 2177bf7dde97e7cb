import unittest
import sys
import os
import stat
import tempfile
import shutil
from pathlib import Path
from unittest.mock import MagicMock

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtCore import QCoreApplication, QEventLoop, QTimer

from foldericon_manager.records import Advisory
from foldericon_manager.restore import RestoreState
from foldericon_manager.runner import RestoreRunner
from foldericon_manager.store import IconStore

APP = QCoreApplication.instance() or QCoreApplication([])

FAKE_FILEICON = """#!/bin/sh
# fake fileicon: fails for folders named "fail-me"
echo "$@" >> "$(dirname "$0")/calls.log"
case "$2" in
  */fail-me) echo "fileicon: cannot set icon" >&2; exit 3 ;;
esac
exit 0
"""


@unittest.skipIf(sys.platform.startswith("win"), "uses a POSIX shell script as fake fileicon")
class TestRestoreRunner(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.workspace = self.test_dir / "workspace"
        self.store = IconStore(self.workspace)
        self.store.initialize()
        self.binary = self.test_dir / "bin" / "fileicon"
        self.binary.parent.mkdir()
        self.binary.write_text(FAKE_FILEICON)
        self.binary.chmod(self.binary.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self.refresh = MagicMock(return_value=Advisory("refresh-cache", True))

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _add(self, name, with_icon=True, applied_at=None):
        folder = self.test_dir / name
        folder.mkdir()
        rel = f"applied-icons/{name}-1.png"
        if with_icon:
            (self.workspace / rel).write_bytes(b"icon")
        self.store.record_application(str(folder), f"{name}.png", False, rel, applied_at=applied_at)
        return str(folder)

    def _run(self, runner):
        loop = QEventLoop()
        results = []
        runner.sig_finished.connect(lambda result: (results.append(result), loop.quit()))
        QTimer.singleShot(15000, loop.quit)
        self.assertTrue(runner.start())
        loop.exec()
        self.assertEqual(len(results), 1, "runner did not finish")
        return results[0]

    def test_runs_records_sequentially(self):
        first = self._add("first", applied_at="2024-01-03T00:00:00.000Z")
        bad = self._add("fail-me", applied_at="2024-01-02T00:00:00.000Z")
        missing = self._add("missing", with_icon=False, applied_at="2024-01-01T00:00:00.000Z")
        runner = RestoreRunner(self.store, binary=str(self.binary), refresh=self.refresh)
        finished_items = []
        runner.sig_item_finished.connect(finished_items.append)

        result = self._run(runner)

        self.assertEqual(result.total, 3)
        self.assertEqual(result.success, 1)
        self.assertEqual(result.failed, 2)
        self.assertEqual([it.folder_path for it in finished_items], [first, bad, missing])
        self.assertEqual(finished_items[0].state, RestoreState.SUCCEEDED)
        self.assertIn("exit 3", finished_items[1].error)
        self.assertIn("icon file not found", finished_items[2].error)
        self.refresh.assert_called_once_with(first)

        calls = (self.binary.parent / "calls.log").read_text().splitlines()
        self.assertEqual(len(calls), 2)
        self.assertTrue(calls[0].startswith(f"set {first} "))
        self.assertFalse(runner.is_running())

    def test_missing_binary_fails_each_record(self):
        self._add("one")
        self._add("two")
        runner = RestoreRunner(self.store, binary=str(self.test_dir / "no-such-fileicon"), refresh=self.refresh)

        result = self._run(runner)

        self.assertEqual(result.failed, 2)
        self.assertEqual(len(result.errors), 2)
        self.refresh.assert_not_called()

    def test_empty_store_still_finishes(self):
        runner = RestoreRunner(self.store, binary=str(self.binary), refresh=self.refresh)
        result = self._run(runner)
        self.assertEqual(result.to_dict(), {"total": 0, "success": 0, "failed": 0, "errors": []})

    def test_start_twice_is_rejected(self):
        self._add("one")
        runner = RestoreRunner(self.store, binary=str(self.binary), refresh=self.refresh)
        loop = QEventLoop()
        runner.sig_finished.connect(lambda _result: loop.quit())
        QTimer.singleShot(15000, loop.quit)
        self.assertTrue(runner.start())
        self.assertFalse(runner.start())
        loop.exec()
        self.assertFalse(runner.is_running())

    def test_cancel_fails_remaining_records(self):
        self._add("a", applied_at="2024-01-02T00:00:00.000Z")
        self._add("b", applied_at="2024-01-01T00:00:00.000Z")
        runner = RestoreRunner(self.store, binary=str(self.binary), refresh=self.refresh)
        runner.sig_item_finished.connect(lambda _item: runner.cancel())

        result = self._run(runner)

        self.assertEqual(result.success, 1)
        self.assertEqual(result.failed, 1)
        self.assertTrue(result.errors[0].endswith(": cancelled"))


if __name__ == '__main__':
    unittest.main()
