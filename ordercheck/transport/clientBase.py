"""
OrdererClientBase: Abstract base for atomic broadcast client adapters.
connect(uri, **opts) -> select adapter
broadcast() -> BroadcastStream, deliver() -> DeliverStream, close()

Streams are owned by the caller that opened them; the client only tracks them so
close() can cancel whatever is still running.

Property of Uncompromising Sensors LLC.
"""


# Imports
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

# Local imports
from ..protocol import BroadcastResponse, DeliverResponse, Envelope, SeekInfo


class BroadcastStream(ABC):
    """Stream of Envelopes. The acknowledgment is read once, on close()."""

    @abstractmethod
    async def send(self, envelope: Envelope) -> None:
        pass

    @abstractmethod
    async def close(self) -> Optional[BroadcastResponse]:
        """Half-close and wait for the acknowledgment. None when the service ends the call without one."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass


class DeliverStream(ABC):
    """Bidirectional stream: SeekInfo out, DeliverResponse in."""

    @abstractmethod
    async def send(self, seekInfo: SeekInfo) -> None:
        pass

    @abstractmethod
    async def recv(self) -> DeliverResponse:
        """Next delivery event. Raises StreamError on failure or end of stream."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass


class OrdererClientBase(ABC):
    """
    Abstract base class for orderer client adapters.

    Lifecycle States:
        - CLOSED: Not connected (initial) or shut down
        - READY: Connected, streams may be opened"""


    def __init__(self, log=None):

        # Setup logging (injected by the application; module logger otherwise)
        if log is None:
            from ..logging import getLogger
            log = getLogger('ordercheck.transport')
        self._logger = log

        # Setup state, attributes
        self._state = 'CLOSED'
        self._endpoint = None
        self._connectedAt = None
        self._instanceId = str(uuid.uuid4())[:8]
        self._streams: Set[Any] = set()


    # ===== Core Abstract Methods (Must Implement) =====
    @abstractmethod
    async def connect(self, uri: str, **opts) -> None:
        pass

    @abstractmethod
    async def broadcast(self) -> BroadcastStream:
        pass

    @abstractmethod
    async def deliver(self) -> DeliverStream:
        pass

    @abstractmethod
    async def close(self, timeout: Optional[float] = None) -> None:
        pass


    # ===== Core Properties =====
    @property
    @abstractmethod
    def clientType(self) -> str:
        pass

    @property
    def state(self) -> str:
        return self._state

    @property
    def isConnected(self) -> bool:
        return self._state == 'READY'

    @property
    def endpoint(self) -> Optional[str]:
        return self._endpoint


    # ===== Optional Methods (Safe Base Defaults) =====
    def status(self) -> Dict[str, Any]:
        return {'state': self._state, 'endpoint': self._endpoint, 'sinceTs': self._connectedAt,
                'streams': len(self._streams)}

    def setLogger(self, logger) -> None:
        self._logger = logger


    # ===== Helper Methods =====
    def _log(self, message: str, level: str = 'INFO', **fields):
        fields.setdefault('client', self.clientType)
        fields.setdefault('endpoint', self._endpoint)
        fields.setdefault('instanceId', self._instanceId)
        getattr(self._logger, level.lower())(message, **fields)

    def _track(self, stream) -> None:
        self._streams.add(stream)

    def _untrack(self, stream) -> None:
        self._streams.discard(stream)

    def _cancelStreams(self) -> None:
        for stream in list(self._streams):
            stream.cancel()
        self._streams.clear()


    # ===== Context Manager Support =====
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
