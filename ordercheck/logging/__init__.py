"""
ordercheck logging - structured hierarchical logger.

API:
    from ordercheck.logging import configureLogging, getLogger

    # Global configuration (once at app startup)
    configureLogging(logDir='logs', level='DEBUG')

    # Build the logger once and hand it to each component
    log = getLogger('ordercheck.harness')
    receiver = UpdateReceiver(..., log=log)

    log.info("Message", key=value)
"""

from .logger import getLogger, configureLogging, StructuredFormatter
from .context import (
    setRunContext,
    getRunContext,
    clearRunContext,
    RunContextFilter
)

__all__ = [
    'getLogger',
    'configureLogging',
    'StructuredFormatter',
    'setRunContext',
    'getRunContext',
    'clearRunContext',
    'RunContextFilter'
]
