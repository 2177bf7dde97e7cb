# foldericon_manager/runner.py
"""
Event-loop restore runner: the restore-all state machine driven by QProcess.

Records are handled strictly one after another; the next record starts only
after the previous fileicon process has finished, so results come back in
get_all() order and the record store is never touched concurrently.
"""

from __future__ import annotations

import shlex
from typing import Callable, List, Optional

from PySide6.QtCore import QObject, QProcess, QTimer, Signal

from .errors import IconToolError
from .icon_tool import VERB_SET, build_args, describe_failure, refresh_folder_cache, resolve_fileicon_binary
from .logger import get_logger
from .records import Advisory
from .restore import RestoreItem, RestoreResult, RestoreState, begin_item, complete_item

logger = get_logger(__name__)


class RestoreRunner(QObject):
    """Re-applies every stored icon without blocking the Qt event loop."""

    sig_started = Signal(int)
    sig_item_started = Signal(int, int, str)
    sig_item_finished = Signal(object)
    sig_command_line = Signal(str)
    sig_finished = Signal(object)

    def __init__(
        self,
        store,
        binary: Optional[str] = None,
        settings=None,
        refresh: Callable[[str], Advisory] = refresh_folder_cache,
        parent=None,
    ):
        super().__init__(parent)
        self.store = store
        self.settings = settings
        self._binary = binary
        self._binary_error = ""
        self._refresh = refresh

        self._result: Optional[RestoreResult] = None
        self._active_item: Optional[RestoreItem] = None
        self._proc: Optional[QProcess] = None
        self._cancelled = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self) -> bool:
        if self._result is not None:
            return False
        items: List[RestoreItem] = [RestoreItem(record=rec) for rec in self.store.get_all()]
        self._result = RestoreResult(items=items)
        self._cancelled = False
        self._resolve_binary()
        logger.info("Restore started for %d records", len(items))
        self.sig_started.emit(len(items))
        self._schedule_next_item()
        return True

    def cancel(self) -> None:
        """Stop after the in-flight record; remaining records fail as cancelled."""
        if self._result is None:
            return
        self._cancelled = True

    def is_running(self) -> bool:
        return self._result is not None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _resolve_binary(self) -> None:
        if self._binary:
            return
        try:
            self._binary = resolve_fileicon_binary(self.settings)
        except IconToolError as exc:
            self._binary_error = str(exc)

    def _schedule_next_item(self) -> None:
        QTimer.singleShot(0, self._start_next_item)

    def _start_next_item(self) -> None:
        result = self._result
        if result is None or self._proc is not None:
            return

        next_item = None
        for it in result.items:
            if it.state == RestoreState.PENDING:
                next_item = it
                break
        if next_item is None:
            self._finalize()
            return
        if self._cancelled:
            next_item.fail("cancelled")
            self.sig_item_finished.emit(next_item)
            self._schedule_next_item()
            return

        idx = result.items.index(next_item)
        self.sig_item_started.emit(idx + 1, result.total, next_item.folder_path)

        if not begin_item(next_item, self.store):
            self.sig_item_finished.emit(next_item)
            self._schedule_next_item()
            return

        next_item.state = RestoreState.APPLYING
        if not self._binary:
            next_item.fail(self._binary_error or "fileicon executable not found")
            self.sig_item_finished.emit(next_item)
            self._schedule_next_item()
            return

        self._active_item = next_item
        args = build_args(VERB_SET, next_item.folder_path, next_item.resolved_icon_path)
        self._proc = QProcess(self)
        self._proc.setProcessChannelMode(QProcess.MergedChannels)
        self._proc.finished.connect(lambda code, status: self._handle_item_finished(code, status))
        self._proc.errorOccurred.connect(self._handle_process_error)
        self._proc.start(self._binary, args)

        pretty_cmd = " ".join([self._binary] + [shlex.quote(a) for a in args])
        self.sig_command_line.emit(pretty_cmd)

    def _handle_process_error(self, error) -> None:
        # FailedToStart never emits finished(); other errors are followed by it
        if error != QProcess.FailedToStart or self._active_item is None:
            return
        item = self._active_item
        item.fail(f"cannot run icon tool {self._binary}: {self._proc.errorString() if self._proc else error}")
        logger.warning("Restore failed %s", item.reason_line())
        self._cleanup_after_item()
        self.sig_item_finished.emit(item)
        self._schedule_next_item()

    def _handle_item_finished(self, code, status) -> None:
        item = self._active_item
        proc = self._proc
        if item is None or proc is None:
            return
        output = bytes(proc.readAll()).decode("utf-8", "ignore")
        if status == QProcess.CrashExit:
            item.fail(f"fileicon crashed while setting icon for {item.folder_path}")
        elif int(code) != 0:
            item.fail(describe_failure(VERB_SET, item.folder_path, int(code), output))
        else:
            complete_item(item, self._refresh)
        if item.state == RestoreState.FAILED:
            logger.warning("Restore failed %s", item.reason_line())

        self._cleanup_after_item()
        self.sig_item_finished.emit(item)
        self._schedule_next_item()

    def _cleanup_after_item(self) -> None:
        if self._proc:
            self._proc.deleteLater()
        self._proc = None
        self._active_item = None

    def _finalize(self) -> None:
        result = self._result
        if result is None:
            return
        self._result = None
        self._cancelled = False
        logger.info(
            "Restore finished: %d total, %d succeeded, %d failed",
            result.total,
            result.success,
            result.failed,
        )
        self.sig_finished.emit(result)
