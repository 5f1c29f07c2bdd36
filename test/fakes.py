"""
Test doubles: a scripted in-memory orderer client and a log that records calls.

FakeOrdererClient.deliverScript holds what successive recv() calls produce:
DeliverResponse objects are returned, exceptions are raised, and an exhausted
script blocks until the stream is cancelled (like a live subscription).
"""

import asyncio
from typing import List, Optional

from ordercheck.errors import ServiceConnectionError, StreamError
from ordercheck.protocol import Block, BroadcastResponse, DeliverResponse, Envelope, Payload, SeekInfo, Status
from ordercheck.transport import BroadcastStream, DeliverStream, OrdererClientBase


class RecordingLog:
    """Stands in for the structured logger; keeps (level, message, fields)."""

    def __init__(self):
        self.records = []

    def _record(self, level, msg, **fields):
        fields.pop('exc_info', None)
        self.records.append((level, msg, fields))

    def debug(self, msg, **fields): self._record('DEBUG', msg, **fields)
    def info(self, msg, **fields): self._record('INFO', msg, **fields)
    def warning(self, msg, **fields): self._record('WARNING', msg, **fields)
    def error(self, msg, **fields): self._record('ERROR', msg, **fields)
    def critical(self, msg, **fields): self._record('CRITICAL', msg, **fields)

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [msg for lvl, msg, _ in self.records if level is None or lvl == level]


class FakeBroadcastStream(BroadcastStream):

    def __init__(self, client: 'FakeOrdererClient'):
        self._client = client
        self.sent: List[Envelope] = []
        self.halfClosed = False
        self.cancelled = False

    async def send(self, envelope: Envelope) -> None:
        if self._client.broadcastSendError:
            raise self._client.broadcastSendError
        self.sent.append(envelope)
        # Sent transactions become visible to subscribers as the next block
        if self._client.cutBlocks:
            self._client.appendBlock([envelope.toBytes()])

    async def close(self) -> Optional[BroadcastResponse]:
        self.halfClosed = True
        if self._client.broadcastCloseError:
            raise self._client.broadcastCloseError
        return BroadcastResponse(status=self._client.broadcastAck)

    def cancel(self) -> None:
        self.cancelled = True
        self._client._untrack(self)


class FakeDeliverStream(DeliverStream):

    def __init__(self, client: 'FakeOrdererClient'):
        self._client = client
        self.seekInfos: List[SeekInfo] = []
        self.cancelled = False

    async def send(self, seekInfo: SeekInfo) -> None:
        if self._client.deliverSendError:
            raise self._client.deliverSendError
        self.seekInfos.append(seekInfo)

    async def recv(self) -> DeliverResponse:
        item = await self._client._deliveries.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def cancel(self) -> None:
        self.cancelled = True
        self._client._untrack(self)


class FakeOrdererClient(OrdererClientBase):
    """In-memory orderer: scripted delivery events, recorded broadcasts."""

    def __init__(self, deliverScript=(), cutBlocks: bool = False, log=None):
        super().__init__(log=log or RecordingLog())
        self._deliveries: asyncio.Queue = asyncio.Queue()
        for item in deliverScript:
            self._deliveries.put_nowait(item)
        self.cutBlocks = cutBlocks
        self.nextBlockNumber = 1
        self.openError: Optional[BaseException] = None
        self.broadcastSendError: Optional[BaseException] = None
        self.deliverSendError: Optional[BaseException] = None
        self.broadcastCloseError: Optional[BaseException] = None
        self.broadcastAck = Status.SUCCESS
        self.broadcastStreams: List[FakeBroadcastStream] = []
        self.deliverStreams: List[FakeDeliverStream] = []

    @property
    def clientType(self) -> str:
        return 'fake'

    async def connect(self, uri: str, **opts) -> None:
        self._endpoint = uri
        self._state = 'READY'

    async def broadcast(self) -> FakeBroadcastStream:
        if self.openError:
            raise self.openError
        stream = FakeBroadcastStream(self)
        self.broadcastStreams.append(stream)
        self._track(stream)
        return stream

    async def deliver(self) -> FakeDeliverStream:
        if self.openError:
            raise self.openError
        stream = FakeDeliverStream(self)
        self.deliverStreams.append(stream)
        self._track(stream)
        return stream

    async def close(self, timeout: Optional[float] = None) -> None:
        self._cancelStreams()
        self._state = 'CLOSED'

    def appendBlock(self, txs: List[bytes]) -> None:
        self._deliveries.put_nowait(DeliverResponse.ofBlock(Block(number=self.nextBlockNumber, data=list(txs))))
        self.nextBlockNumber += 1


def blockResponse(number: int, *payloads: bytes) -> DeliverResponse:
    """Delivery event for a block carrying one well-formed transaction per payload."""
    txs = [Envelope.wrap(Payload(data=p)).toBytes() for p in payloads]
    return DeliverResponse.ofBlock(Block(number=number, data=txs))


def connectionRefused() -> ServiceConnectionError:
    return ServiceConnectionError('Failed to connect to localhost:1: UNAVAILABLE')


def streamBroken() -> StreamError:
    return StreamError('Deliver receive failed: UNAVAILABLE: Socket closed')
