"""
Hierarchical structured logger for the verification harness.

Features:
- One logger per component name, configured once and cached by the stdlib
- Optional rotating log file (console only when no logDir is configured)
- Structured field logging: log.info("Message", key=value)
- Run context (runId, chainId) stamped on every record

Usage:
    from ordercheck.logging import configureLogging, getLogger

    configureLogging(level='DEBUG')             # once at app startup
    log = getLogger('ordercheck.harness')       # constructed once, passed to components

    log.info("Broadcast sent", event='broadcastSent', size=4)

Property of Uncompromising Sensors LLC.
"""

# Imports
import inspect, logging, logging.handlers, socket
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone as tz

# Local imports
from .context import RunContextFilter


# Global state
_hostname = socket.gethostname()
_configured = False
_fileHandlers = {}  # Singleton cache: logPath -> handler
_config = {
    'logDir': None,
    'maxBytes': 10_000_000,         # 10 MB per log file before rotation
    'backupCount': 5,
    'console': True,
    'level': logging.INFO,
    'utc': False
}


def configureLogging(logDir: Optional[str] = None, maxBytes: int = 10_000_000,
                     backupCount: int = 5, console: bool = True,
                     level: str = 'INFO', utc: bool = False):
    """
    Set process-wide logging options. Called once by the CLI before any component logs;
    calling it again re-levels loggers that were already handed out.

    logDir=None keeps output on the console. Files rotate at maxBytes with backupCount
    generations kept. An unknown level name raises ValueError.
    """
    global _configured

    levelNo = logging.getLevelName(level.upper())
    if not isinstance(levelNo, int):
        raise ValueError(f"Unknown log level '{level}'")

    _config.update({'logDir': logDir, 'maxBytes': maxBytes, 'backupCount': backupCount,
                    'console': console, 'level': levelNo, 'utc': utc})

    if logDir:
        Path(logDir).mkdir(parents=True, exist_ok=True)

    # Loggers created before (re)configuration pick up the new level
    for name in list(logging.root.manager.loggerDict):
        logger = logging.getLogger(name)
        if getattr(logger, '_configuredByHarness', False):
            logger.setLevel(levelNo)
            for handler in logger.handlers:
                handler.setLevel(levelNo)

    _configured = True


def _autoDetectName() -> str:
    """Auto-detect logger name from call stack, e.g. 'ordercheck.core.receiver.UpdateReceiver'"""

    frame = inspect.currentframe()
    try:
        current = frame
        while current is not None:
            current = current.f_back
            if current is None:
                break

            module = inspect.getmodule(current)
            if module is None:
                continue

            moduleName = module.__name__

            # Skip frames inside this logging package and the import machinery
            if moduleName.startswith('ordercheck.logging') or moduleName.startswith('importlib'):
                continue
            if moduleName == '__main__':
                continue

            className = None
            if 'self' in current.f_locals:
                className = current.f_locals['self'].__class__.__name__
            elif 'cls' in current.f_locals:
                className = current.f_locals['cls'].__name__

            return f"{moduleName}.{className}" if className else moduleName

        return 'ordercheck'
    finally:
        del frame


class StructuredFormatter(logging.Formatter):
    """Renders structured fields after the message: 'Block received [blockNumber=3, txCount=1]'."""

    # Attributes every LogRecord carries; anything else came in through extra=
    _RESERVED = frozenset(logging.LogRecord('', 0, '', 0, '', None, None).__dict__) | {
        'message', 'asctime', 'hostname', 'taskName'}

    def __init__(self, fmt=None, datefmt=None, utc=False):
        super().__init__(fmt, datefmt)
        self.utc = utc

    def formatTime(self, record, datefmt=None):
        if self.utc:
            ct = datetime.fromtimestamp(record.created, tz=tz.utc)
        else:
            ct = datetime.fromtimestamp(record.created)

        if datefmt:
            return ct.strftime(datefmt)
        return f"{ct.strftime('%Y-%m-%d %H:%M:%S')},{int(record.msecs):03d}"

    def format(self, record):
        record.hostname = _hostname

        structuredFields = [f"{key}={value}" for key, value in record.__dict__.items()
                            if key not in self._RESERVED and not key.startswith('_')]

        # Append fields to a copy of the message so other handlers see the original
        originalMsg = record.msg
        if structuredFields:
            record.msg = f"{originalMsg} [{', '.join(structuredFields)}]"
        try:
            return super().format(record)
        finally:
            record.msg = originalMsg


def getLogger(name: Optional[str] = None, separateFile: bool = False) -> logging.Logger:
    """
    Get or create a logger.

    Args:
        name: Logger name (auto-detected from call stack if None)
        separateFile: If True, log to '<name>.log' instead of the top-level app file

    Returns:
        logging.Logger whose level methods accept structured fields as keyword arguments
    """
    if not _configured:
        configureLogging()

    if name is None:
        name = _autoDetectName()

    logger = logging.getLogger(name)
    logger.propagate = False

    if not getattr(logger, '_configuredByHarness', False):
        logger.setLevel(_config['level'])
        contextFilter = RunContextFilter()

        if _config['logDir']:
            appName = name if separateFile else name.split('.')[0]
            logPath = str(Path(_config['logDir']) / f"{appName}.log")

            if logPath not in _fileHandlers:
                fileHandler = logging.handlers.RotatingFileHandler(
                    logPath,
                    maxBytes=_config['maxBytes'],
                    backupCount=_config['backupCount'],
                    encoding='utf-8'
                )
                fileHandler.setLevel(_config['level'])
                fileHandler.setFormatter(StructuredFormatter(
                    '%(asctime)s - %(hostname)s - %(name)s - %(levelname)s - %(message)s',
                    utc=_config['utc']
                ))
                fileHandler.addFilter(contextFilter)
                _fileHandlers[logPath] = fileHandler

            logger.addHandler(_fileHandlers[logPath])

        if _config['console']:
            consoleHandler = logging.StreamHandler()
            consoleHandler.setLevel(_config['level'])
            consoleHandler.setFormatter(StructuredFormatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                utc=_config['utc']
            ))
            consoleHandler.addFilter(contextFilter)
            logger.addHandler(consoleHandler)

        logger._configuredByHarness = True

    return _wrapLogger(logger)


def _wrapLogger(logger: logging.Logger) -> logging.Logger:
    """Make debug/info/warning/error/critical take keyword fields and pass them on as extra=."""
    if getattr(logger, '_isWrapped', False):
        return logger

    def wrap(original):
        def method(msg, *args, **kwargs):
            # exc_info and stack_info are reserved logging params
            excInfo = kwargs.pop('exc_info', False)
            stackInfo = kwargs.pop('stack_info', False)
            if kwargs:
                original(msg, *args, extra=kwargs, exc_info=excInfo, stack_info=stackInfo)
            else:
                original(msg, *args, exc_info=excInfo, stack_info=stackInfo)
        method.__doc__ = original.__doc__
        return method

    logger.debug = wrap(logger.debug)
    logger.info = wrap(logger.info)
    logger.warning = wrap(logger.warning)
    logger.error = wrap(logger.error)
    logger.critical = wrap(logger.critical)
    logger._isWrapped = True

    return logger
