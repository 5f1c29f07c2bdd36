"""
UpdateReceiver: subscribes to the Deliver stream and counts ledger updates.

- Opens one Deliver stream and seeks from the newest block with no stop
- Reads a fixed number of delivery events, one UPDATE signal per block
- Unwraps every transaction best-effort; decode failures are logged and counted
- Sets the readiness event after the first block so the sender may broadcast
- Any stream failure or non-block event is fatal and queued on the error channel

Property of Uncompromising Sensors LLC.
"""

# Imports
import asyncio
from typing import List, Optional

# Local imports
from .signals import NEEDED_UPDATES, Signal
from ..errors import DecodeError, HarnessError, ServiceConnectionError, StreamError, UnexpectedVariantError
from ..protocol import MAX_BLOCK_NUMBER, Behavior, Block, Payload, SeekInfo, SeekPosition, unwrapTransaction
from ..transport import OrdererClientBase


class UpdateReceiver:

    name = 'updateReceiver'

    def __init__(self, chainId: str, signals: asyncio.Queue, errors: asyncio.Queue, client: OrdererClientBase, log,
                 ready: Optional[asyncio.Event] = None, expectedUpdates: int = NEEDED_UPDATES):
        self.chainId = chainId
        self.signals = signals
        self.errors = errors
        self.client = client
        self.log = log
        self.ready = ready
        self.expectedUpdates = expectedUpdates

        # Observations, read by the harness after the run
        self.blockNumbers: List[int] = []
        self.observedPayloads: List[Payload] = []
        self.decodeFailures = 0


    def seekInfo(self) -> SeekInfo:
        return SeekInfo(chainId=self.chainId,
                        start=SeekPosition.newest(),
                        stop=SeekPosition.specified(MAX_BLOCK_NUMBER),
                        behavior=Behavior.BLOCK_UNTIL_READY)


    async def run(self) -> None:
        self.log.info('Creating a ledger update delivery stream', component='UpdateReceiver', chainId=self.chainId)
        try:
            stream = await self.client.deliver()
        except ServiceConnectionError as e:
            await self._fail(e)
            return

        try:
            try:
                await stream.send(self.seekInfo())
            except StreamError as e:
                await self._fail(e)
                return

            self.log.info('Listening to ledger updates', component='UpdateReceiver', expected=self.expectedUpdates)
            for index in range(self.expectedUpdates):
                try:
                    response = await stream.recv()
                except StreamError as e:
                    await self._fail(e)
                    return

                if response.block is None:
                    await self._fail(UnexpectedVariantError(
                        f"Expected a block in delivery event {index + 1}, got status {response.status.name}",
                        variant=response.variant))
                    return

                self._inspectBlock(response.block)

                # The first block proves the subscription is live
                if self.ready is not None and not self.ready.is_set():
                    self.ready.set()
                    self.log.debug('Subscription active', component='UpdateReceiver', event='subscriptionReady')

                await self.signals.put(Signal.UPDATE)
        finally:
            stream.cancel()

        self.log.info('Exiting', component='UpdateReceiver', blocks=len(self.blockNumbers))


    def _inspectBlock(self, block: Block) -> None:
        self.blockNumbers.append(block.number)
        self.log.info('Received a ledger update', component='UpdateReceiver', blockNumber=block.number, txCount=len(block.data))

        for index, tx in enumerate(block.data):
            try:
                payload = unwrapTransaction(tx)
            except DecodeError as e:
                self.decodeFailures += 1
                self.log.warning('Undecodable transaction', component='UpdateReceiver', blockNumber=block.number,
                                 txIndex=index, errorMsg=str(e))
                continue
            self.observedPayloads.append(payload)
            self.log.info(f'{index + 1} - {list(payload.data)}', component='UpdateReceiver', blockNumber=block.number)


    async def _fail(self, error: HarnessError) -> None:
        error.worker = self.name
        self.log.error(f'Update receiver failed: {error}', component='UpdateReceiver', errorClass=type(error).__name__)
        await self.errors.put(error)
