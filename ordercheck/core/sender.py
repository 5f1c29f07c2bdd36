"""
BroadcastSender: submits exactly one transaction.

Waits for the receiver's subscription to become active (or, with no readiness
event wired, a fixed warm-up delay), opens a Broadcast stream, sends one
Envelope wrapping the configured payload and emits one SENT signal. Either the
SENT signal or one fatal error is produced, never both. The Broadcast stream is
half-closed after the send and cancelled on every exit path.

Property of Uncompromising Sensors LLC.
"""

# Imports
import asyncio
from typing import Optional

# Local imports
from .signals import DEFAULT_PAYLOAD, Signal
from ..errors import HarnessError, ServiceConnectionError, StreamError, SubscriptionNotReadyError
from ..protocol import Envelope, Payload, Status
from ..transport import OrdererClientBase


class BroadcastSender:

    name = 'broadcastSender'

    def __init__(self, signals: asyncio.Queue, errors: asyncio.Queue, client: OrdererClientBase, log,
                 payloadData: bytes = DEFAULT_PAYLOAD, ready: Optional[asyncio.Event] = None,
                 readyTimeout: float = 30.0, warmupDelay: float = 5.0):
        self.signals = signals
        self.errors = errors
        self.client = client
        self.log = log
        self.payloadData = payloadData
        self.ready = ready
        self.readyTimeout = readyTimeout
        self.warmupDelay = warmupDelay
        self.sentEnvelope: Optional[Envelope] = None


    async def run(self) -> None:

        # Hold the broadcast until the subscription can observe it
        if self.ready is not None:
            self.log.info('Waiting for the subscription to become active', component='BroadcastSender',
                          readyTimeout=self.readyTimeout)
            try:
                await asyncio.wait_for(self.ready.wait(), timeout=self.readyTimeout)
            except asyncio.TimeoutError:
                await self._fail(SubscriptionNotReadyError(
                    f"Subscription not active after {self.readyTimeout}s, broadcast not sent"))
                return
        else:
            self.log.info('Waiting before sending', component='BroadcastSender', warmupDelay=self.warmupDelay)
            await asyncio.sleep(self.warmupDelay)

        try:
            stream = await self.client.broadcast()
        except ServiceConnectionError as e:
            await self._fail(e)
            return

        try:
            envelope = Envelope.wrap(Payload(data=self.payloadData))
            try:
                await stream.send(envelope)
            except StreamError as e:
                await self._fail(e)
                return

            self.sentEnvelope = envelope
            self.log.info(f'Broadcast sent: {list(self.payloadData)}', component='BroadcastSender', event='broadcastSent')

            # The envelope is already written; a missing or negative ack is only logged
            try:
                ack = await stream.close()
            except StreamError as e:
                self.log.warning(f'Broadcast not acknowledged: {e}', component='BroadcastSender')
            else:
                if ack is not None and ack.status is not Status.SUCCESS:
                    self.log.warning(f'Broadcast acknowledged with {ack.status.name}', component='BroadcastSender',
                                     status=int(ack.status))

            await self.signals.put(Signal.SENT)
        finally:
            stream.cancel()

        self.log.info('Exiting', component='BroadcastSender')


    async def _fail(self, error: HarnessError) -> None:
        error.worker = self.name
        self.log.error(f'Broadcast sender failed: {error}', component='BroadcastSender', errorClass=type(error).__name__)
        await self.errors.put(error)
