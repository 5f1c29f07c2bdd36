"""
Harness error taxonomy.

Fatal errors (ServiceConnectionError, StreamError, UnexpectedVariantError,
SubscriptionNotReadyError) end the worker that hit them and are queued on the
shared error channel. DecodeError is non-fatal: the receiver logs it and keeps
going. Wait-slot timeouts are soft and never raised; the aggregator records them.

Property of Uncompromising Sensors LLC.
"""


class HarnessError(Exception):
    """Base class for every error raised by the harness."""

    def __init__(self, message: str, *, worker: str = None):
        super().__init__(message)
        self.worker = worker

    def __str__(self):
        message = super().__str__()
        return f"[{self.worker}] {message}" if self.worker else message


class ServiceConnectionError(HarnessError, ConnectionError):
    """Dial or stream-open failure."""


class StreamError(HarnessError):
    """Send/receive failure on an established stream, or premature end of stream."""


class DecodeError(HarnessError, ValueError):
    """Bytes that do not decode into the expected message."""


class UnexpectedVariantError(HarnessError):
    """A delivery event carried something other than a block."""

    def __init__(self, message: str, *, variant: str = None, worker: str = None):
        super().__init__(message, worker=worker)
        self.variant = variant


class SubscriptionNotReadyError(HarnessError):
    """The subscription did not report itself active within the allowed time."""


class ConfigError(HarnessError):
    """Invalid configuration file or value."""


class ServiceLaunchError(HarnessError):
    """The service under test could not be started or exited early."""
