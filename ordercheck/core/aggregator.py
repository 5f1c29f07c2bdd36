"""
ResultAggregator: turns worker signals and errors into a Verdict.

Wait model:
    - up to waitSlots iterations, each waiting for one signal or slotTimeout seconds
    - a timed-out slot is soft: it is counted and the loop moves on
    - once every supplied worker task has exited and the signal channel is empty,
      the remaining slots are skipped

Evaluation:
    - every queued error is reported, not just the first
    - a worker task that died with an unexpected exception is reported too
    - updates and sent are compared to the expectations independently, so
      "the service failed" (errors) and "the service was silent" (counts)
      stay distinguishable

Property of Uncompromising Sensors LLC.
"""

# Imports
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

# Local imports
from .signals import NEEDED_SENT, NEEDED_UPDATES, Signal


# Wait outcomes that are not signals
_TIMED_OUT = object()
_EXHAUSTED = object()


class FailureReason(Enum):
    MISSING_UPDATES = 'missing updates'
    MISSING_SENT = 'missing broadcasts'


@dataclass
class Verdict:
    """Outcome of one verification run."""

    updates: int
    sent: int
    neededUpdates: int = NEEDED_UPDATES
    neededSent: int = NEEDED_SENT
    errors: List[BaseException] = field(default_factory=list)
    reasons: List[FailureReason] = field(default_factory=list)
    timedOutSlots: int = 0

    # Diagnostics filled in by the harness; they never change the outcome
    decodeFailures: int = 0
    payloadObserved: Optional[bool] = None

    @property
    def passed(self) -> bool:
        return not self.errors and not self.reasons

    def failures(self) -> List[str]:
        messages = [f"{type(e).__name__}: {e}" for e in self.errors]
        for reason in self.reasons:
            if reason is FailureReason.MISSING_UPDATES:
                messages.append(f"{reason.value}: expected {self.neededUpdates}, got {self.updates}")
            else:
                messages.append(f"{reason.value}: expected {self.neededSent}, got {self.sent}")
        return messages

    def summary(self) -> str:
        counts = f"updates={self.updates}/{self.neededUpdates}, sent={self.sent}/{self.neededSent}"
        if self.passed:
            return f"PASS ({counts})"
        return f"FAIL ({counts}): " + '; '.join(self.failures())


class ResultAggregator:

    def __init__(self, signals: asyncio.Queue, errors: asyncio.Queue, log, waitSlots: int = 3,
                 slotTimeout: float = 30.0, neededUpdates: int = NEEDED_UPDATES, neededSent: int = NEEDED_SENT,
                 workers: Sequence[asyncio.Task] = ()):
        self._signals = signals
        self._errors = errors
        self.log = log
        self.waitSlots = waitSlots
        self.slotTimeout = slotTimeout
        self.neededUpdates = neededUpdates
        self.neededSent = neededSent
        self._workers = list(workers)


    async def run(self) -> Verdict:
        updates = 0
        sent = 0
        timedOut = 0

        for slot in range(self.waitSlots):
            signal = await self._nextSignal()

            if signal is _TIMED_OUT:
                timedOut += 1
                self.log.warning('No signal within slot timeout', component='ResultAggregator', slot=slot + 1,
                                 slotTimeout=self.slotTimeout)
                continue
            if signal is _EXHAUSTED:
                self.log.info('All workers exited, skipping remaining slots', component='ResultAggregator',
                              skipped=self.waitSlots - slot)
                break

            if signal == Signal.UPDATE:
                updates += 1
            elif signal == Signal.SENT:
                sent += 1
            else:
                self.log.warning(f'Ignoring unknown signal {signal!r}', component='ResultAggregator')

        errors = self._drainErrors()

        reasons = []
        if updates != self.neededUpdates:
            reasons.append(FailureReason.MISSING_UPDATES)
        if sent != self.neededSent:
            reasons.append(FailureReason.MISSING_SENT)

        verdict = Verdict(updates=updates, sent=sent, neededUpdates=self.neededUpdates, neededSent=self.neededSent,
                          errors=errors, reasons=reasons, timedOutSlots=timedOut)

        if verdict.passed:
            self.log.info('Successfully sent and received everything', component='ResultAggregator',
                          updates=updates, sent=sent)
        else:
            for message in verdict.failures():
                self.log.error(message, component='ResultAggregator')
        return verdict


    def _drainErrors(self) -> List[BaseException]:
        errors = []
        while True:
            try:
                errors.append(self._errors.get_nowait())
            except asyncio.QueueEmpty:
                break

        # Workers that crashed instead of queueing their failure
        for worker in self._workers:
            if worker.done() and not worker.cancelled() and worker.exception() is not None:
                errors.append(worker.exception())
        return errors


    async def _nextSignal(self):
        try:
            return self._signals.get_nowait()
        except asyncio.QueueEmpty:
            pass

        live = [w for w in self._workers if not w.done()]
        if self._workers and not live:
            return _EXHAUSTED

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.slotTimeout
        getter = asyncio.ensure_future(self._signals.get())
        pending = {getter, *live}
        outcome = _TIMED_OUT

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break

                done, _ = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    return getter.result()
                if not done:
                    break

                pending -= done
                if pending == {getter}:
                    outcome = _EXHAUSTED
                    break

            # The getter may have been handed a signal while we were deciding
            signal = await self._cancelGetter(getter)
            if signal is not None:
                return signal
            if outcome is _EXHAUSTED:
                try:
                    return self._signals.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            return outcome
        finally:
            if not getter.done():
                getter.cancel()


    @staticmethod
    async def _cancelGetter(getter: asyncio.Future):
        getter.cancel()
        result, = await asyncio.gather(getter, return_exceptions=True)
        return None if isinstance(result, BaseException) else result
