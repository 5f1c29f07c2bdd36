"""
Logging Tests: structured fields, run context, rotating file output
"""

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ordercheck.logging import (
    RunContextFilter, StructuredFormatter, clearRunContext, configureLogging, getLogger, getRunContext,
    setRunContext
)


class ListHandler(logging.Handler):

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def restoreLogging():
    yield
    clearRunContext()
    configureLogging()


class TestStructuredLogger:
    """Keyword fields on level methods"""

    def test_kwargs_become_record_fields(self):
        """log.info('msg', key=value) puts key on the record"""
        log = getLogger('test.ordercheck.fields')
        handler = ListHandler()
        log.addHandler(handler)
        try:
            log.info('Broadcast sent', event='broadcastSent', size=4)
        finally:
            log.removeHandler(handler)

        record, = handler.records
        assert record.getMessage() == 'Broadcast sent'
        assert (record.event, record.size) == ('broadcastSent', 4)

    def test_logger_cached_and_wrapped_once(self):
        """The same name returns the same configured logger"""
        first = getLogger('test.ordercheck.cached')
        second = getLogger('test.ordercheck.cached')
        assert first is second
        assert first.propagate is False

    def test_formatter_appends_fields(self):
        """Fields render as [key=value, ...] after the message"""
        formatter = StructuredFormatter('%(levelname)s - %(message)s')
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'Received a ledger update', None, None)
        record.blockNumber = 7
        assert formatter.format(record) == 'INFO - Received a ledger update [blockNumber=7]'
        assert record.msg == 'Received a ledger update'

    def test_invalid_level_rejected(self, restoreLogging):
        """Unknown level names are refused"""
        with pytest.raises(ValueError):
            configureLogging(level='LOUD')


class TestRunContext:
    """runId/chainId stamping"""

    def test_filter_stamps_context(self, restoreLogging):
        """Records carry the active run identity"""
        setRunContext('abc123', 'testchainid')
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'm', None, None)
        assert RunContextFilter().filter(record)
        assert (record.runId, record.chainId) == ('abc123', 'testchainid')
        assert getRunContext() == {'runId': 'abc123', 'chainId': 'testchainid'}

    def test_new_run_without_chain_drops_previous_chain(self, restoreLogging):
        """A run started without a chain ID does not inherit the previous run's"""
        setRunContext('first', 'testchainid')
        setRunContext('second')
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'm', None, None)
        RunContextFilter().filter(record)
        assert record.runId == 'second'
        assert not hasattr(record, 'chainId')
        assert getRunContext() == {'runId': 'second', 'chainId': None}

    def test_no_context_no_fields(self, restoreLogging):
        """Outside a run nothing is added"""
        clearRunContext()
        record = logging.LogRecord('x', logging.INFO, __file__, 1, 'm', None, None)
        RunContextFilter().filter(record)
        assert not hasattr(record, 'runId')


class TestFileOutput:
    """Rotating file handler"""

    def test_log_file_written(self, tmp_path, restoreLogging):
        """With a logDir, records land in <name>.log with their fields"""
        configureLogging(logDir=str(tmp_path), console=False, level='DEBUG')
        setRunContext('run42')
        log = getLogger('filecheck.component', separateFile=True)
        log.debug('Subscription active', event='subscriptionReady')
        for handler in log.handlers:
            handler.flush()

        text = (tmp_path / 'filecheck.component.log').read_text(encoding='utf-8')
        assert 'Subscription active' in text
        assert 'event=subscriptionReady' in text
        assert 'runId=run42' in text
