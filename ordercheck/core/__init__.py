"""ordercheck.core - receiver and sender workers, result aggregation, and the run harness."""

from .signals import Signal, NEEDED_UPDATES, NEEDED_SENT, DEFAULT_PAYLOAD
from .receiver import UpdateReceiver
from .sender import BroadcastSender
from .aggregator import ResultAggregator, Verdict, FailureReason
from .harness import VerificationHarness

__all__ = [
    'Signal',
    'NEEDED_UPDATES',
    'NEEDED_SENT',
    'DEFAULT_PAYLOAD',
    'UpdateReceiver',
    'BroadcastSender',
    'ResultAggregator',
    'Verdict',
    'FailureReason',
    'VerificationHarness'
]
