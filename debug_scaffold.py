"""Debug and crash handling utilities for ProfileLauncher.

This module provides structured JSON logging, a lightweight breadcrumb
ring buffer and helpers for gathering crash context and creating crash
bundles.  The functions are intentionally conservative so that unit
tests can import the module even when PySide6/Qt is not available.
"""

from __future__ import annotations

from collections import deque
import faulthandler
import json
import logging
from logging.handlers import RotatingFileHandler
import os
import platform
import signal
import subprocess  # nosec B404: opens the log folder with the platform viewer
import sys
import threading
import traceback
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType
from typing import Any, Deque, Dict, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from PySide6.QtCore import QtMsgType, QMessageLogContext, qInstallMessageHandler
    from PySide6.QtWidgets import (
        QApplication,
        QDialog,
        QHBoxLayout,
        QLabel,
        QMessageBox,
        QPushButton,
        QTextEdit,
        QVBoxLayout,
    )
else:  # runtime import guarded for environments without PySide6
    try:  # pragma: no cover - best effort
        from PySide6.QtCore import QtMsgType, QMessageLogContext, qInstallMessageHandler
        from PySide6.QtWidgets import (
            QApplication,
            QDialog,
            QHBoxLayout,
            QLabel,
            QMessageBox,
            QPushButton,
            QTextEdit,
            QVBoxLayout,
        )
    except Exception:  # pragma: no cover - headless environments
        QtMsgType = QMessageLogContext = QApplication = QHBoxLayout = QLabel = (
            QMessageBox
        ) = QPushButton = QTextEdit = QVBoxLayout = Any  # type: ignore[misc]
        QDialog = object  # type: ignore[misc,assignment]
        qInstallMessageHandler = None  # type: ignore[assignment]


APP_NAME = "ProfileLauncher"

# Logging configuration ----------------------------------------------------
LOG_MAX_BYTES = 1_048_576  # 1 MB
LOG_BACKUPS = 5
BREADCRUMB_LIMIT = 100

# ring buffer for recent breadcrumbs
_breadcrumbs: Deque[dict[str, Any]] = deque(maxlen=BREADCRUMB_LIMIT)

# LogRecord attributes; ``extra`` keys must not collide with these.
RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "process",
        "processName",
        "taskName",
        "message",
        "asctime",
    }
)

_RENAMED_KEYS = {"name": "profile_name", "message": "event_message"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JsonFormatter(logging.Formatter):
    """Minimal JSON line formatter."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        msg = record.getMessage()
        if msg:
            payload["message"] = msg

        for key, value in record.__dict__.items():
            if key in RESERVED_RECORD_KEYS:
                continue
            payload[key] = value

        if record.exc_info:
            exc_type, exc, tb = record.exc_info
            payload["exc_type"] = getattr(exc_type, "__name__", str(exc_type))
            payload["exc_msg"] = str(exc)
            payload["trace"] = "".join(traceback.format_exception(exc_type, exc, tb))

        return json.dumps(payload, ensure_ascii=False, default=str)


def sanitize_log_extra(extra: dict[str, Any] | None) -> dict[str, Any] | None:
    """Rename keys that would clash with :class:`logging.LogRecord` attributes.

    ``logging`` raises ``KeyError`` when ``extra`` overwrites a record
    attribute, so ``name`` becomes ``profile_name``, ``message`` becomes
    ``event_message`` and any other reserved key gets an ``extra_`` prefix.
    """
    if extra is None:
        return None
    clean: dict[str, Any] = {}
    for key, value in extra.items():
        if key in _RENAMED_KEYS:
            key = _RENAMED_KEYS[key]
        elif key in RESERVED_RECORD_KEYS:
            key = f"extra_{key}"
        clean[key] = value
    return clean


def redact_email(email: str | None) -> str | None:
    """Keep the first character of the local part and the domain."""
    if not email:
        return email
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def record_breadcrumb(event: str, **fields: Any) -> None:
    """Add a small breadcrumb to the ring buffer and log at DEBUG."""

    entry: Dict[str, Any] = {"ts": _utcnow().isoformat(), "event": event}
    entry.update(fields)
    _breadcrumbs.append(entry)
    logging.getLogger("breadcrumb").debug("", extra=sanitize_log_extra(entry))


def get_breadcrumbs() -> list[dict[str, Any]]:
    """Return a copy of the current breadcrumb ring."""

    return list(_breadcrumbs)


def _log_dir(app_name: str) -> Path:
    if sys.platform.startswith("win"):
        base = Path(os.getenv("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Logs"
    else:
        base = Path(os.getenv("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    path = base / app_name
    path.mkdir(parents=True, exist_ok=True)
    return path


def collect_runtime_context(app: QApplication | None) -> dict[str, Any]:
    """Gather a snapshot of the runtime environment."""

    ctx: dict[str, Any] = {
        "app_name": app.applicationName() if app else APP_NAME,
        "os": {
            "name": platform.system(),
            "release": platform.release(),
        },
        "python": platform.python_version(),
    }

    try:
        import importlib

        pyside6 = importlib.import_module("PySide6")
        ctx["pyside6"] = getattr(pyside6, "__version__", "unknown")
        qtcore = importlib.import_module("PySide6.QtCore")
        ctx["qt"] = getattr(qtcore, "qVersion")()
    except Exception:  # pragma: no cover - PySide6 may be absent
        pass

    if app:
        try:
            screen = app.primaryScreen()
            if screen:
                geom = screen.geometry()
                ctx["screen"] = {
                    "width": geom.width(),
                    "height": geom.height(),
                    "dpr": screen.devicePixelRatio(),
                }
        except Exception:  # pragma: no cover - best effort
            pass

    try:
        from chrome_bridge import chrome_user_data_dir, find_chrome_exe

        ctx["chrome_exe"] = find_chrome_exe()
        user_data = chrome_user_data_dir()
        ctx["chrome_user_data"] = str(user_data) if user_data else None
    except Exception:  # pragma: no cover - import cycle in tests
        ctx["chrome_exe"] = None

    ctx["breadcrumbs"] = get_breadcrumbs()[-20:]
    return ctx


def create_crash_bundle(log_dir: Path, context: dict[str, Any]) -> Path:
    """Zip logs and *context* into a timestamped crash bundle."""

    ts = _utcnow().strftime("%Y%m%d-%H%M%S")
    bundle = log_dir / f"crash-{ts}.zip"
    crash_json = log_dir / "crash.json"
    crash_json.write_text(json.dumps(context, indent=2, default=str), encoding="utf-8")
    with zipfile.ZipFile(bundle, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in log_dir.glob("debug.log*"):
            zf.write(path, path.name)
        fh_path = log_dir / "faulthandler.log"
        if fh_path.exists():
            zf.write(fh_path, fh_path.name)
        zf.write(crash_json, crash_json.name)
    return bundle


class CrashDialog(QDialog):  # pragma: no cover - GUI code
    """Crash dialog offering the log folder and a crash bundle."""

    def __init__(
        self,
        app_name: str,
        exc: BaseException,
        context: dict[str, Any],
        log_dir: Path,
    ) -> None:
        super().__init__()
        self._context = context
        self._log_dir = log_dir
        self.setWindowTitle(app_name)

        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        summary = str(exc)

        logging.getLogger(__name__).error(
            "Uncaught exception",
            extra={
                "event": "uncaught_exception",
                "exc_type": type(exc).__name__,
                "exc_msg": summary,
                "trace": trace,
                "context": context,
            },
        )

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(summary))

        self._details = QTextEdit(json.dumps(context, indent=2, default=str)[: 64 * 1024])
        self._details.setReadOnly(True)
        self._details.setVisible(False)
        layout.addWidget(self._details)

        toggle = QPushButton("Technical details")
        toggle.setCheckable(True)
        toggle.toggled.connect(self._details.setVisible)
        layout.addWidget(toggle)

        buttons = QHBoxLayout()
        copy_btn = QPushButton("Copy Details")
        copy_btn.clicked.connect(self.copy_details)
        buttons.addWidget(copy_btn)

        open_btn = QPushButton("Open Log Folder")
        open_btn.clicked.connect(self.open_logs)
        buttons.addWidget(open_btn)

        bundle_btn = QPushButton("Create Crash Bundle")
        bundle_btn.clicked.connect(self.create_bundle)
        buttons.addWidget(bundle_btn)

        close_btn = QPushButton("Close")
        close_btn.clicked.connect(self.close)
        buttons.addWidget(close_btn)

        layout.addLayout(buttons)

    # ---- button handlers -------------------------------------------------
    def copy_details(self) -> None:
        QApplication.clipboard().setText(
            json.dumps(self._context, indent=2, ensure_ascii=False, default=str)
        )

    def open_logs(self) -> None:
        path = str(self._log_dir)
        if sys.platform.startswith("win"):
            os.startfile(path)  # nosec B606 - open local folder
        elif sys.platform == "darwin":
            subprocess.call(["open", path])  # nosec B603 B607
        else:
            subprocess.call(["xdg-open", path])  # nosec B603 B607

    def create_bundle(self) -> None:
        bundle = create_crash_bundle(self._log_dir, self._context)
        QMessageBox.information(self, "Crash bundle", f"Saved to {bundle}")


def install_debug_scaffold(app: QApplication, app_name: str = APP_NAME) -> Path:
    """Install JSON file logging, global exception hooks and a Qt message handler.

    Returns the log directory.
    """

    app.setApplicationName(app_name)
    log_dir = _log_dir(app_name)
    log_path = log_dir / "debug.log"

    handler = RotatingFileHandler(
        log_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(handler)

    fh_path = log_dir / "faulthandler.log"
    fh_file = open(fh_path, "a", encoding="utf-8")  # noqa: SIM115 - lives for the process
    try:
        faulthandler.enable(fh_file)
    except (RuntimeError, ValueError):  # pragma: no cover - frozen builds
        pass

    # user-triggered trace dumps where the platform supports them
    for sig_name in ("SIGUSR1", "SIGUSR2", "SIGBREAK"):
        signum = getattr(signal, sig_name, None)
        if signum is not None and hasattr(faulthandler, "register"):
            try:
                faulthandler.register(signum, fh_file)  # type: ignore[attr-defined]
            except (RuntimeError, ValueError):  # pragma: no cover
                pass

    def handle_exception(
        exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None
    ) -> None:
        context = collect_runtime_context(app)
        dlg = CrashDialog(app_name, exc, context, log_dir)
        dlg.exec()

    sys.excepthook = handle_exception

    def thread_hook(args: threading.ExceptHookArgs) -> None:
        exc = args.exc_value or RuntimeError("Uncaught thread exception")
        root_logger.error(
            "Uncaught thread exception",
            exc_info=(args.exc_type, exc, args.exc_traceback),
            extra={"event": "uncaught_thread_exception"},
        )

    threading.excepthook = thread_hook

    def unraisable_hook(args: sys.UnraisableHookArgs) -> None:
        root_logger.warning(
            "Unraisable exception: %s", args.exc_value, extra={"event": "unraisable"}
        )

    sys.unraisablehook = unraisable_hook

    if qInstallMessageHandler is not None:

        def qt_message_handler(
            mode: QtMsgType, context: QMessageLogContext, message: str
        ) -> None:
            level_map = {
                QtMsgType.QtDebugMsg: logging.DEBUG,
                QtMsgType.QtInfoMsg: logging.INFO,
                QtMsgType.QtWarningMsg: logging.WARNING,
                QtMsgType.QtCriticalMsg: logging.ERROR,
                QtMsgType.QtFatalMsg: logging.CRITICAL,
            }
            root_logger.log(level_map.get(mode, logging.INFO), message)
            if mode == QtMsgType.QtFatalMsg:
                raise SystemExit(message)

        qInstallMessageHandler(qt_message_handler)

    record_breadcrumb("app_start")
    return log_dir
