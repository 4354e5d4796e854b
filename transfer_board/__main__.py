from __future__ import annotations

import contextlib
import faulthandler
import logging
import logging.handlers
import os
import sys
import threading
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import uvicorn

from transfer_board.application.services.board import TransferBoardService
from transfer_board.application.services.refresh_coordinator import RefreshCoordinator
from transfer_board.config import Settings, settings
from transfer_board.domain.rules.assignment import AssignmentResolver, AssignmentTable
from transfer_board.domain.rules.time_slot import TimeCutoffConfig
from transfer_board.infrastructure.http.transfer_api import TransferApiClient
from transfer_board.infrastructure.messaging.event_bus import AsyncEventBus
from transfer_board.infrastructure.realtime.ws_server import WebSocketServerAdapter
from transfer_board.presentation.api.app import BoardRuntime, create_app
from transfer_board.presentation.api.ws import WsRuntime

log = logging.getLogger(__name__)


def _configure_logging() -> None:
    level_name = settings.log_level.upper().strip() or "INFO"
    level = getattr(logging, level_name, logging.INFO)
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if settings.log_to_console:
        console_handler = logging.StreamHandler(stream=sys.stdout)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    log_path = settings.log_file.strip()
    if log_path:
        path = Path(log_path)
        if not path.is_absolute():
            path = Path.cwd() / path
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=path,
            maxBytes=20 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.captureWarnings(True)
    log.info(
        "Logging configured level=%s console=%s file=%s",
        level_name,
        settings.log_to_console,
        log_path or "<disabled>",
    )


def _install_crash_hooks() -> None:
    def _global_excepthook(exc_type, exc_value, exc_traceback) -> None:
        log.critical("Unhandled exception on main thread", exc_info=(exc_type, exc_value, exc_traceback))

    def _thread_excepthook(args) -> None:
        log.critical(
            "Unhandled exception on thread=%s",
            args.thread.name if args.thread else "<unknown>",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _global_excepthook
    threading.excepthook = _thread_excepthook
    with contextlib.suppress(Exception):
        faulthandler.enable(all_threads=True)


class _SystemClock:
    def __init__(self, tz: ZoneInfo) -> None:
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


def build_runtime(config: Settings) -> BoardRuntime:
    clock = _SystemClock(ZoneInfo(config.timezone))
    event_bus = AsyncEventBus(default_queue_size=config.event_queue_size)
    api_client = TransferApiClient(
        config.transfers_api_url,
        timeout=config.transfers_api_timeout_seconds,
        headers=config.transfers_api_headers,
    )
    coordinator = RefreshCoordinator(
        api_client,
        clock,
        refresh_interval_seconds=config.refresh_interval_seconds,
        event_bus=event_bus,
    )
    table = AssignmentTable.from_mapping(config.assignment_table)
    board = TransferBoardService(
        coordinator,
        AssignmentResolver(table),
        clock,
        cutoff=TimeCutoffConfig(raw=config.time_cutoff),
        policy=config.time_slot_policy,
        event_bus=event_bus,
    )
    ws_server = WebSocketServerAdapter()
    ws_runtime = WsRuntime(event_bus, ws_server, board, queue_size=config.event_queue_size)
    log.info(
        "Runtime built assignees=%s cutoff=%s policy=%s timezone=%s interval_seconds=%s",
        table.assignees(),
        config.time_cutoff,
        config.time_slot_policy.value,
        config.timezone,
        config.refresh_interval_seconds,
    )
    return BoardRuntime(
        api_client=api_client,
        coordinator=coordinator,
        board=board,
        ws_server=ws_server,
        ws_runtime=ws_runtime,
    )


def main() -> int:
    _configure_logging()
    _install_crash_hooks()
    log.info("Application starting pid=%s python=%s", os.getpid(), sys.version.split()[0])
    app = create_app(build_runtime(settings), title=settings.app_name)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    log.info("Application stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
