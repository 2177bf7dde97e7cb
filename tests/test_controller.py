import unittest
import sys
import os
import base64
import json
import tempfile
import shutil
from pathlib import Path
from unittest import mock

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtCore import QCoreApplication

from foldericon_manager.config_manager import ConfigManager
from foldericon_manager.controller import IconManagerController
from foldericon_manager.errors import IconApplyError, IconToolError, StorageError, WorkspaceError
from foldericon_manager.paths import PathNormalizer

APP = QCoreApplication.instance() or QCoreApplication([])


class FakeTool:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def set_icon(self, folder, icon):
        self.calls.append(("set", folder, icon))
        if self.fail:
            raise IconToolError(f"fileicon set failed for {folder} (exit 1): boom")

    def remove_icon(self, folder):
        self.calls.append(("rm", folder))
        if self.fail:
            raise IconToolError(f"fileicon rm failed for {folder} (exit 1): boom")


class TestIconManagerController(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.home = self.test_dir / "home" / "alice"
        self.folder = self.home / "Projects"
        self.folder.mkdir(parents=True)
        self.icon = self.test_dir / "sunset.png"
        self.icon.write_bytes(b"\x89PNG sunset")
        self.workspace = self.test_dir / "workspace"

        self.config = ConfigManager(self.test_dir / "userdata")
        self.config.update_workspace_path(self.workspace)
        self.tool = FakeTool()
        self.controller = IconManagerController(
            config=self.config,
            tool=self.tool,
            normalizer=PathNormalizer(home=str(self.home)),
            temp_dir=self.test_dir / "tmp",
        )

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_activate_binds_configured_workspace(self):
        changed = []
        self.controller.workspace_changed.connect(changed.append)
        self.controller.activate()
        self.assertTrue(self.controller.has_workspace())
        self.assertEqual(self.controller.get_workspace_path(), str(self.workspace))
        self.assertEqual(changed, [str(self.workspace)])
        self.assertTrue((self.workspace / "icon-manager-db.json").exists())
        self.assertTrue((self.workspace / "applied-icons").is_dir())

    def test_no_workspace_before_activate(self):
        self.assertFalse(self.controller.has_workspace())
        with self.assertRaises(WorkspaceError):
            self.controller.applied_icons()

    def test_activate_falls_back_to_default(self):
        blocker = self.test_dir / "blocker"
        blocker.write_text("x")
        self.config.update_workspace_path(blocker / "ws")
        fallback = self.test_dir / "default-ws"
        with mock.patch("foldericon_manager.controller.DEFAULT_WORKSPACE", fallback):
            self.controller.activate()
        self.assertEqual(self.controller.get_workspace_path(), str(fallback))
        self.assertEqual(self.config.get_workspace_path(), str(fallback))

    def test_switch_workspace_closes_old_store(self):
        self.controller.activate()
        old_store = self.controller.context.store
        other = self.test_dir / "other"

        self.controller.switch_workspace(other)

        self.assertEqual(self.controller.get_workspace_path(), str(other))
        self.assertEqual(ConfigManager(self.test_dir / "userdata").load_config()["workspacePath"], str(other))
        with self.assertRaises(StorageError):
            old_store.get_all()

    def test_apply_icon_records_and_emits(self):
        self.controller.activate()
        applied = []
        self.controller.icon_applied.connect(applied.append)

        result = self.controller.apply_icon(str(self.folder), str(self.icon))

        self.assertEqual(applied, [str(self.folder)])
        rec = result.record
        self.assertEqual(rec.id, 1)
        self.assertEqual(rec.folder_path, str(self.folder))
        self.assertEqual(rec.source_icon_name, "sunset.png")
        self.assertTrue(rec.icon_path.startswith("applied-icons/sunset-"))
        self.assertEqual(self.tool.calls[0][0:2], ("set", str(self.folder)))
        self.assertEqual(Path(self.tool.calls[0][2]).read_bytes(), self.icon.read_bytes())

        with open(self.workspace / "icon-manager-db.json", "r", encoding="utf-8") as f:
            data = json.load(f)
        self.assertIn("{USER}", next(iter(data["iconApplications"])))

    def test_apply_to_missing_folder_emits_error(self):
        self.controller.activate()
        errors = []
        self.controller.icon_apply_error.connect(errors.append)
        with self.assertRaises(IconApplyError):
            self.controller.apply_icon(str(self.test_dir / "nope"), str(self.icon))
        self.assertEqual(len(errors), 1)
        self.assertEqual(self.controller.applied_icons(), [])
        self.assertEqual(self.tool.calls, [])

    def test_apply_data_url(self):
        self.controller.activate()
        url = "data:image/png;base64," + base64.b64encode(b"\x89PNG inline").decode()

        result = self.controller.apply_icon(str(self.folder), url, icon_name="Blue Folder.png", is_built_in=True)

        self.assertTrue(result.record.is_built_in)
        self.assertIsNone(result.record.original_icon_path)
        self.assertEqual(Path(self.tool.calls[0][2]).read_bytes(), b"\x89PNG inline")
        self.assertEqual(list((self.test_dir / "tmp").iterdir()), [])

    def test_tool_failure_discards_managed_copy(self):
        self.tool.fail = True
        self.controller.activate()
        with self.assertRaises(IconToolError):
            self.controller.apply_icon(str(self.folder), str(self.icon))
        self.assertEqual(list((self.workspace / "applied-icons").iterdir()), [])
        self.assertIsNone(self.controller.get_record(str(self.folder)))

    def test_store_failure_discards_managed_copy(self):
        self.controller.activate()
        errors = []
        self.controller.icon_apply_error.connect(errors.append)
        with mock.patch("foldericon_manager.store.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(StorageError):
                self.controller.apply_icon(str(self.folder), str(self.icon))
        self.assertEqual(list((self.workspace / "applied-icons").iterdir()), [])
        self.assertEqual(len(errors), 1)
        self.assertIsNone(self.controller.get_record(str(self.folder)))

    def test_reapply_then_reset_deletes_every_copy(self):
        self.controller.activate()
        self.controller.apply_icon(str(self.folder), str(self.icon))
        self.controller.apply_icon(str(self.folder), str(self.icon))
        self.assertEqual(len(list((self.workspace / "applied-icons").iterdir())), 2)

        removal = self.controller.reset_icon(str(self.folder))

        self.assertEqual(removal.warnings, [])
        self.assertEqual(list((self.workspace / "applied-icons").iterdir()), [])

    def test_reset_icon(self):
        self.controller.activate()
        applied = self.controller.apply_icon(str(self.folder), str(self.icon))
        asset = self.workspace / applied.record.icon_path
        reset = []
        self.controller.icon_reset.connect(reset.append)

        removal = self.controller.reset_icon(str(self.folder))

        self.assertTrue(removal.removed)
        self.assertEqual(removal.warnings, [])
        self.assertFalse(asset.exists())
        self.assertEqual(reset, [str(self.folder)])
        self.assertEqual(self.tool.calls[-1], ("rm", str(self.folder)))
        self.assertIsNone(self.controller.get_record(str(self.folder)))

    def test_check_path(self):
        self.assertEqual(
            IconManagerController.check_path(str(self.folder)),
            {"exists": True, "isDirectory": True, "path": str(self.folder)},
        )
        self.assertFalse(IconManagerController.check_path(str(self.icon))["isDirectory"])
        self.assertFalse(IconManagerController.check_path(str(self.test_dir / "nope"))["exists"])

    def test_restore_all_uses_tool(self):
        self.controller.activate()
        self.controller.apply_icon(str(self.folder), str(self.icon))
        self.tool.calls.clear()

        result = self.controller.restore_all()

        self.assertEqual(result.to_dict(), {"total": 1, "success": 1, "failed": 0, "errors": []})
        self.assertEqual(self.tool.calls[0][1], str(self.folder))


if __name__ == '__main__':
    unittest.main()
