"""
VerificationHarness: one broadcast/deliver verification run.

Creates the signal and error channels and the readiness event, starts the
UpdateReceiver and BroadcastSender as independent tasks, lets the
ResultAggregator render a Verdict, then cancels every worker still running so
no stream outlives the run.

Property of Uncompromising Sensors LLC.
"""

# Imports
import asyncio, uuid
from typing import List

# Local imports
from .aggregator import ResultAggregator, Verdict
from .receiver import UpdateReceiver
from .sender import BroadcastSender
from ..config import HarnessConfig
from ..logging import clearRunContext, setRunContext
from ..transport import OrdererClientBase


class VerificationHarness:

    def __init__(self, client: OrdererClientBase, config: HarnessConfig, log):
        self.client = client
        self.config = config
        self.log = log
        self.runId = uuid.uuid4().hex[:12]
        self.receiver: UpdateReceiver = None
        self.sender: BroadcastSender = None


    async def run(self) -> Verdict:
        setRunContext(self.runId, self.config.chainId)
        try:
            return await self._run()
        finally:
            clearRunContext()


    async def _run(self) -> Verdict:
        config = self.config
        signals: asyncio.Queue = asyncio.Queue()
        errors: asyncio.Queue = asyncio.Queue()
        ready = asyncio.Event() if config.useReadyHandshake else None

        self.receiver = UpdateReceiver(config.chainId, signals, errors, self.client, self.log, ready=ready,
                                       expectedUpdates=config.neededUpdates)
        self.sender = BroadcastSender(signals, errors, self.client, self.log, payloadData=config.payloadData,
                                      ready=ready, readyTimeout=config.readyTimeoutSeconds,
                                      warmupDelay=config.warmupSeconds)

        self.log.info('Starting a task waiting for ledger updates', component='VerificationHarness')
        receiverTask = asyncio.create_task(self.receiver.run(), name=UpdateReceiver.name)

        self.log.info('Starting a single broadcast sender task', component='VerificationHarness')
        senderTask = asyncio.create_task(self.sender.run(), name=BroadcastSender.name)

        workers = [receiverTask, senderTask]
        aggregator = ResultAggregator(signals, errors, self.log, waitSlots=config.waitSlots,
                                      slotTimeout=config.slotTimeoutSeconds, neededUpdates=config.neededUpdates,
                                      neededSent=config.neededSent, workers=workers)
        try:
            verdict = await aggregator.run()
        finally:
            await self._stopWorkers(workers)

        verdict.decodeFailures = self.receiver.decodeFailures
        verdict.payloadObserved = any(p.data == self.sender.payloadData for p in self.receiver.observedPayloads)

        if verdict.decodeFailures:
            self.log.warning('Some transactions could not be decoded', component='VerificationHarness',
                             decodeFailures=verdict.decodeFailures)
        self.log.info(verdict.summary(), component='VerificationHarness', payloadObserved=verdict.payloadObserved,
                      blocks=self.receiver.blockNumbers)
        return verdict


    async def _stopWorkers(self, workers: List[asyncio.Task]) -> None:
        running = [w for w in workers if not w.done()]
        for worker in running:
            self.log.debug(f'Cancelling {worker.get_name()}', component='VerificationHarness')
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
