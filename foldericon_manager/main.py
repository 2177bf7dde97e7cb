# foldericon_manager/main.py
"""
Folder Icon Manager: command entry point.
Creates the Qt core app, sets up logging, binds the configured workspace and
dispatches one command.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from PySide6.QtCore import QCoreApplication

from .controller import IconManagerController
from .errors import FolderIconError
from .logger import get_logger, setup_logging
from .restore import RestoreItem, RestoreResult, RestoreState
from .settings_store import APP_NAME, APP_ORG, APP_VER, get_settings

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="foldericon-manager", description=f"{APP_NAME} {APP_VER}")
    sub = parser.add_subparsers(dest="command", required=True)

    ws = sub.add_parser("workspace", help="show or switch the workspace directory")
    ws.add_argument("path", nargs="?", help="new workspace directory")

    sub.add_parser("list", help="list applied icons, most recent first")

    apply = sub.add_parser("apply", help="apply an icon to a folder")
    apply.add_argument("folder")
    apply.add_argument("icon", help="icon file path or data: URL")
    apply.add_argument("--name", help="display name recorded for the icon")
    apply.add_argument("--builtin", action="store_true", help="icon comes from the bundled set")

    reset = sub.add_parser("reset", help="remove the custom icon from a folder")
    reset.add_argument("folder")

    restore = sub.add_parser("restore", help="re-apply every recorded icon")
    restore.add_argument("--async", dest="use_runner", action="store_true", help="drive the restore from the Qt event loop")
    return parser


def _print_result(result: RestoreResult) -> int:
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0 if result.failed == 0 else 1


def _print_item(item: RestoreItem) -> None:
    mark = "ok" if item.state == RestoreState.SUCCEEDED else "FAILED"
    print(f"[{mark}] {item.folder_path}" + (f": {item.error}" if item.error else ""))


def _run_async_restore(app: QCoreApplication, controller: IconManagerController) -> int:
    runner = controller.restore_runner()
    outcome: dict = {}

    def _done(result: RestoreResult) -> None:
        outcome["code"] = _print_result(result)
        app.quit()

    runner.sig_item_finished.connect(_print_item)
    runner.sig_finished.connect(_done)
    runner.start()
    app.exec()
    return outcome.get("code", 1)


def run(args: argparse.Namespace, app: QCoreApplication) -> int:
    controller = IconManagerController(settings=get_settings())
    controller.activate()

    if args.command == "workspace":
        if args.path:
            controller.switch_workspace(args.path)
        print(controller.get_workspace_path())
        return 0

    if args.command == "list":
        for rec in controller.applied_icons():
            kind = "built-in" if rec.is_built_in else "custom"
            print(f"#{rec.id}\t{rec.applied_at}\t{rec.folder_path}\t{rec.source_icon_name} ({kind}) -> {rec.icon_path}")
        return 0

    if args.command == "apply":
        result = controller.apply_icon(args.folder, args.icon, icon_name=args.name, is_built_in=args.builtin)
        print(f"Applied {result.record.source_icon_name} to {result.record.folder_path}")
        for adv in result.advisories:
            if not adv.ok:
                print(f"warning: {adv}", file=sys.stderr)
        return 0

    if args.command == "reset":
        removal = controller.reset_icon(args.folder)
        print(f"Reset {args.folder}" + ("" if removal.removed else " (no record)"))
        for adv in removal.warnings:
            print(f"warning: {adv}", file=sys.stderr)
        return 0

    if args.command == "restore":
        if args.use_runner:
            return _run_async_restore(app, controller)
        return _print_result(controller.restore_all())

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_ORG)
    setup_logging()

    try:
        return run(args, app)
    except FolderIconError as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
