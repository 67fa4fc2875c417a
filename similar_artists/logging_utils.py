"""
Logging setup for the CLI and for individual runs.

main_app calls configure_logging() once; every other module only uses
logging.getLogger(__name__). Each orchestrator run sets a short run id that is
stamped on its records, so an auto-mode run and an interactive run can be told
apart in the log file.
"""
import logging
import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

_logging_configured = False
_run_id: Optional[str] = None

# Marks handlers installed here so reconfiguration leaves foreign handlers alone
_HANDLER_TAG = "_similar_artists_handler"

_BASE_FMT = '%(asctime)s | %(levelname)-5s | %(name)s | '
_CONSOLE_FMT = _BASE_FMT + '%(message)s'
_CONSOLE_FMT_WITH_RUN_ID = _BASE_FMT + 'run_id=%(run_id)s | %(message)s'
_FILE_FMT = _BASE_FMT + '%(funcName)s:%(lineno)d | run_id=%(run_id)s | %(message)s'

QUIET_LOGGERS = ('urllib3', 'requests')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')

Metric = Union[int, float, str]


class RunIdFilter(logging.Filter):
    """Adds the current run id (or '-') to every record as record.run_id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id or "-"
        return True


def set_run_id(run_id: Optional[str]) -> None:
    global _run_id
    _run_id = run_id


def get_run_id() -> Optional[str]:
    return _run_id


def new_run_id() -> str:
    """Eight hex characters, unique enough to tell runs of one session apart."""
    return uuid.uuid4().hex[:8]


def _tagged(handler: logging.Handler, level: int, fmt: str, datefmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handler.addFilter(RunIdFilter())
    setattr(handler, _HANDLER_TAG, True)
    return handler


def _remove_tagged_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()


def configure_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    file_level: str = 'DEBUG',
    force: bool = False,
    run_id: Optional[str] = None,
    console: bool = True,
    show_run_id: bool = False,
) -> None:
    """
    Install the console and (optional) file handlers on the root logger.

    Only the first call takes effect unless force=True. The LOG_LEVEL and
    LOG_FILE environment variables override level and a missing log_file.

    Args:
        level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path of a log file; parent directories are created
        file_level: Level of the file handler
        force: Replace the handlers of an earlier call
        run_id: Run id to stamp on records from now on
        console: Log to stdout
        show_run_id: Put the run id in console lines too (file lines always have it)
    """
    global _logging_configured

    if run_id:
        set_run_id(run_id)
    if _logging_configured and not force:
        return

    level = os.getenv('LOG_LEVEL', level).upper()
    console_level = getattr(logging, level, logging.INFO)
    log_file = log_file or os.getenv('LOG_FILE')

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    _remove_tagged_handlers(root)

    if console:
        fmt = _CONSOLE_FMT_WITH_RUN_ID if (show_run_id or console_level == logging.DEBUG) else _CONSOLE_FMT
        root.addHandler(_tagged(logging.StreamHandler(sys.stdout), console_level, fmt, '%H:%M:%S'))

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(_tagged(
            logging.FileHandler(log_file, encoding='utf-8'),
            getattr(logging, file_level.upper(), logging.DEBUG),
            _FILE_FMT,
            '%Y-%m-%d %H:%M:%S',
        ))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True
    logging.getLogger(__name__).debug(f"Logging ready: console={level if console else 'off'}, file={log_file or 'none'}")


def format_duration(seconds: float) -> str:
    """'250ms', '4.2s' or '3m 5s'."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m {rest:.0f}s"


@contextmanager
def stage_timer(stage_name: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """
    Time one pipeline stage.

    Logs "<stage> done in <t>" at INFO, or "<stage> aborted after <t>" at
    WARNING when the block raises (the exception propagates).

    Usage:
        with stage_timer("Collect seeds", logger):
            seeds = collect_seeds(selection)
    """
    logger = logger or logging.getLogger(__name__)
    logger.debug(f"{stage_name}...")
    start = time.perf_counter()
    try:
        yield
    except BaseException:
        logger.warning(f"{stage_name} aborted after {format_duration(time.perf_counter() - start)}")
        raise
    logger.info(f"{stage_name} done in {format_duration(time.perf_counter() - start)}")


def format_count(n: int, singular: str, plural: Optional[str] = None) -> str:
    """format_count(3, 'track') -> '3 tracks'"""
    word = singular if n == 1 else (plural or f"{singular}s")
    return f"{n:,} {word}"


def truncate_list(items: Sequence[Any], max_items: int = 3, format_fn=str) -> str:
    """Artist lists for log lines: 'Genesis, Yes, Camel (+5 more)'."""
    if not items:
        return "(none)"
    shown = ', '.join(format_fn(item) for item in items[:max_items])
    hidden = len(items) - max_items
    return f"{shown} (+{hidden} more)" if hidden > 0 else shown


def add_logging_args(parser) -> None:
    """Add --log-level, --debug, --quiet, --log-file and --show-run-id."""
    group = parser.add_argument_group('logging')
    group.add_argument('--log-level', choices=list(LOG_LEVELS), default='INFO',
                       help='Console log level (default: INFO)')
    group.add_argument('--debug', action='store_true',
                       help='Same as --log-level DEBUG')
    group.add_argument('--quiet', action='store_true',
                       help='Same as --log-level WARNING')
    group.add_argument('--log-file', metavar='PATH',
                       help='Also write DEBUG logs to PATH (overrides logging.file)')
    group.add_argument('--show-run-id', action='store_true',
                       help='Show the run id in console lines')


def resolve_log_level(args) -> str:
    """--debug wins over --quiet, which wins over --log-level."""
    if getattr(args, 'debug', False):
        return 'DEBUG'
    if getattr(args, 'quiet', False):
        return 'WARNING'
    return getattr(args, 'log_level', 'INFO')


class RunSummary:
    """
    Metrics of one run, logged as a block when the run ends.

    The orchestrator also returns as_dict() in RunResult.metrics.
    """

    def __init__(self, title: str, logger: Optional[logging.Logger] = None):
        self.title = title
        self.logger = logger or logging.getLogger(__name__)
        self.metrics: Dict[str, Metric] = {}
        self.start_time = time.perf_counter()

    def add(self, key: str, value: Metric) -> None:
        self.metrics[key] = value

    def increment(self, key: str, amount: int = 1) -> None:
        self.metrics[key] = self.metrics.get(key, 0) + amount

    def get(self, key: str, default: Any = 0) -> Any:
        return self.metrics.get(key, default)

    def as_dict(self) -> Dict[str, Metric]:
        return dict(self.metrics)

    def lines(self) -> List[str]:
        """Summary block without the surrounding rules."""
        run_id = get_run_id()
        header = f"{self.title} summary" + (f" (run {run_id})" if run_id else "")
        body = []
        for key, value in self.metrics.items():
            label = key.replace('_', ' ')
            body.append(f"  {label}: {value:.2f}" if isinstance(value, float) else f"  {label}: {value}")
        body.append(f"  elapsed: {format_duration(time.perf_counter() - self.start_time)}")
        return [header] + body

    def log(self, level: int = logging.INFO) -> None:
        rule = "-" * 50
        self.logger.log(level, rule)
        for line in self.lines():
            self.logger.log(level, line)
        self.logger.log(level, rule)
