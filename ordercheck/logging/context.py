"""
Logging Run Context

Provides run-level context (runId, chainId) to all log messages emitted while a
verification run is in progress.
"""

import logging
from typing import Optional
from contextvars import ContextVar

# Context variables for run identity
_run_id: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
_chain_id: ContextVar[Optional[str]] = ContextVar('chain_id', default=None)


class RunContextFilter(logging.Filter):
    """
    Logging filter that adds run context to all log records
    """

    def filter(self, record):
        runId = _run_id.get()
        chainId = _chain_id.get()

        if runId and not hasattr(record, 'runId'):
            record.runId = runId
        if chainId and not hasattr(record, 'chainId'):
            record.chainId = chainId

        return True


def setRunContext(runId: str, chainId: str = None):
    """
    Set run-level context for logging

    Args:
        runId: Identifier of the current verification run
        chainId: Chain being verified (optional)
    """
    _run_id.set(runId)
    _chain_id.set(chainId)


def getRunContext() -> dict:
    """Get current run context"""
    return {
        'runId': _run_id.get(),
        'chainId': _chain_id.get()
    }


def clearRunContext():
    """Clear run context"""
    _run_id.set(None)
    _chain_id.set(None)
