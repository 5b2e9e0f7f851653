import contextlib
import datetime
import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import Settings, settings as default_settings


APP_LOGGER_NAME = "nfaproxy"

_LOGGING_CONFIGURED = False


def resolve_timezone(name: str | None) -> datetime.tzinfo:
    """
    LOG_TIMEZONE as a tzinfo; unset or unknown names mean system local time.
    """
    if name:
        with contextlib.suppress(ZoneInfoNotFoundError, ValueError):
            return ZoneInfo(name)
    return datetime.datetime.now().astimezone().tzinfo or datetime.timezone.utc


class LocalTimezoneFormatter(logging.Formatter):
    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        *,
        timezone_name: str | None = None,
    ) -> None:
        super().__init__(fmt, datefmt)
        self.tz = resolve_timezone(timezone_name)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.datetime.fromtimestamp(record.created, self.tz)
        if datefmt:
            return stamp.strftime(datefmt)
        return stamp.isoformat(timespec="milliseconds")


class DailyFileHandler(logging.FileHandler):
    """
    FileHandler that writes to <log_dir>/<prefix>-YYYY-MM-DD.log, switching
    files at the first record of a new day and keeping the newest
    `backup_count` files.
    """

    def __init__(
        self,
        log_dir: Path,
        filename_prefix: str = "nfa-proxy",
        backup_count: int = 7,
        encoding: str = "utf-8",
    ) -> None:
        self.log_dir = Path(log_dir)
        self.filename_prefix = filename_prefix
        self.backup_count = backup_count
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._day = datetime.date.today()
        super().__init__(self.path_for(self._day), mode="a", encoding=encoding)
        self.prune()

    def path_for(self, day: datetime.date) -> Path:
        return self.log_dir / f"{self.filename_prefix}-{day:%Y-%m-%d}.log"

    def prune(self) -> None:
        if self.backup_count <= 0:
            return
        pattern = f"{self.filename_prefix}-*.log"
        stale = sorted(self.log_dir.glob(pattern))[: -self.backup_count]
        for path in stale:
            with contextlib.suppress(OSError):
                path.unlink()

    def _roll_if_needed(self) -> None:
        today = datetime.date.today()
        if today == self._day:
            return
        self._day = today
        if self.stream is not None:
            self.stream.close()
            self.stream = None
        self.baseFilename = os.fspath(self.path_for(today).resolve())
        self.prune()

    def emit(self, record: logging.LogRecord) -> None:
        self._roll_if_needed()
        super().emit(record)


def setup_logging(config: Settings | None = None) -> None:
    """
    Configure the nfaproxy logger: daily files under LOG_DIR for our own
    records, console output for everything (ours, uvicorn, httpx).
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    cfg = config or default_settings
    level_value = getattr(logging, str(cfg.log_level).upper(), logging.INFO)
    formatter = LocalTimezoneFormatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        timezone_name=cfg.log_timezone,
    )

    file_handler = DailyFileHandler(log_dir=Path(cfg.log_dir))
    file_handler.setFormatter(formatter)
    file_handler.addFilter(lambda record: record.name.startswith(APP_LOGGER_NAME))

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(level_value)
    app_logger.propagate = True  # console output comes from the root handler
    app_logger.addHandler(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level_value)
    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root_logger.handlers
    )
    if not has_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _LOGGING_CONFIGURED = True


logger = logging.getLogger(APP_LOGGER_NAME)
