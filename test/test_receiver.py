"""
UpdateReceiver Tests

Test Coverage:
1. Subscription request (newest -> never stop, block until ready)
2. One UPDATE per block, readiness after the first block
3. Decode tolerance: undecodable transactions are counted, not fatal
4. Non-block delivery events, receive failures and open failures are fatal
5. The deliver stream is cancelled on every exit path
"""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ordercheck.core import Signal, UpdateReceiver
from ordercheck.errors import ServiceConnectionError, StreamError, UnexpectedVariantError
from ordercheck.protocol import MAX_BLOCK_NUMBER, Behavior, Block, DeliverResponse, SeekKind, Status

from fakes import FakeOrdererClient, RecordingLog, blockResponse, connectionRefused, streamBroken


def drain(queue: asyncio.Queue) -> list:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


async def runReceiver(client, ready=None, expectedUpdates=2):
    signals: asyncio.Queue = asyncio.Queue()
    errors: asyncio.Queue = asyncio.Queue()
    log = RecordingLog()
    receiver = UpdateReceiver('testchainid', signals, errors, client, log, ready=ready,
                              expectedUpdates=expectedUpdates)
    await receiver.run()
    return receiver, drain(signals), drain(errors), log


class TestSubscription:
    """Subscription and update counting"""

    @pytest.mark.asyncio
    async def test_seek_newest_without_stop(self):
        """Seeks from the newest block with the never-stop position"""
        client = FakeOrdererClient([blockResponse(0), blockResponse(1)])
        await runReceiver(client)

        seekInfo, = client.deliverStreams[0].seekInfos
        assert seekInfo.chainId == 'testchainid'
        assert seekInfo.start.kind is SeekKind.NEWEST
        assert seekInfo.stop.kind is SeekKind.SPECIFIED
        assert seekInfo.stop.number == MAX_BLOCK_NUMBER
        assert seekInfo.behavior is Behavior.BLOCK_UNTIL_READY

    @pytest.mark.asyncio
    async def test_one_update_per_block(self):
        """Two blocks yield two UPDATE signals and no errors"""
        client = FakeOrdererClient([blockResponse(0), blockResponse(1, bytes([0, 1, 2, 3]))])
        receiver, signals, errors, _ = await runReceiver(client)

        assert signals == [Signal.UPDATE, Signal.UPDATE]
        assert errors == []
        assert receiver.blockNumbers == [0, 1]
        assert [p.data for p in receiver.observedPayloads] == [bytes([0, 1, 2, 3])]

    @pytest.mark.asyncio
    async def test_stops_after_expected_updates(self):
        """Blocks beyond the expected count are left unread"""
        client = FakeOrdererClient([blockResponse(0), blockResponse(1), blockResponse(2)])
        receiver, signals, _, _ = await runReceiver(client)
        assert len(signals) == 2
        assert receiver.blockNumbers == [0, 1]

    @pytest.mark.asyncio
    async def test_ready_set_after_first_block(self):
        """The readiness event fires once the subscription delivered a block"""
        ready = asyncio.Event()
        client = FakeOrdererClient([blockResponse(0)])
        signals: asyncio.Queue = asyncio.Queue()
        errors: asyncio.Queue = asyncio.Queue()
        receiver = UpdateReceiver('testchainid', signals, errors, client, RecordingLog(), ready=ready)

        task = asyncio.create_task(receiver.run())
        await asyncio.wait_for(ready.wait(), timeout=2.0)
        assert signals.qsize() == 1

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        assert client.deliverStreams[0].cancelled

    @pytest.mark.asyncio
    async def test_stream_cancelled_after_success(self):
        """The deliver stream is released once the expected blocks arrived"""
        client = FakeOrdererClient([blockResponse(0), blockResponse(1)])
        await runReceiver(client)
        assert client.deliverStreams[0].cancelled
        assert client.status()['streams'] == 0


class TestDecodeTolerance:
    """Undecodable transactions"""

    @pytest.mark.asyncio
    async def test_undecodable_envelope_still_counts(self):
        """A garbage transaction yields exactly one UPDATE and no fatal error"""
        client = FakeOrdererClient([DeliverResponse.ofBlock(Block(number=4, data=[b'\x00garbage']))])
        receiver, signals, errors, log = await runReceiver(client, expectedUpdates=1)

        assert signals == [Signal.UPDATE]
        assert errors == []
        assert receiver.decodeFailures == 1
        assert receiver.observedPayloads == []
        assert 'Undecodable transaction' in log.messages('WARNING')

    @pytest.mark.asyncio
    async def test_good_transactions_beside_bad_ones(self):
        """Decoding continues past a bad transaction in the same block"""
        good = blockResponse(5, b'\x07').block.data[0]
        client = FakeOrdererClient([DeliverResponse.ofBlock(Block(number=5, data=[b'{', good]))])
        receiver, _, _, _ = await runReceiver(client, expectedUpdates=1)
        assert receiver.decodeFailures == 1
        assert [p.data for p in receiver.observedPayloads] == [b'\x07']


class TestFailures:
    """Fatal receiver errors"""

    @pytest.mark.asyncio
    async def test_status_event_is_unexpected_variant(self):
        """A status instead of a block is reported as UnexpectedVariantError"""
        client = FakeOrdererClient([DeliverResponse.ofStatus(Status.NOT_FOUND)])
        _, signals, errors, _ = await runReceiver(client)

        assert signals == []
        error, = errors
        assert isinstance(error, UnexpectedVariantError)
        assert error.variant == 'status'
        assert error.worker == 'updateReceiver'
        assert 'NOT_FOUND' in str(error)
        assert client.deliverStreams[0].cancelled

    @pytest.mark.asyncio
    async def test_receive_failure_after_one_block(self):
        """A broken stream ends the receiver with one update and one StreamError"""
        client = FakeOrdererClient([blockResponse(0), streamBroken()])
        _, signals, errors, _ = await runReceiver(client)

        assert signals == [Signal.UPDATE]
        error, = errors
        assert isinstance(error, StreamError)
        assert client.deliverStreams[0].cancelled

    @pytest.mark.asyncio
    async def test_open_failure(self):
        """A stream that cannot be opened is reported as ServiceConnectionError"""
        client = FakeOrdererClient()
        client.openError = connectionRefused()
        _, signals, errors, log = await runReceiver(client)

        assert signals == []
        error, = errors
        assert isinstance(error, ServiceConnectionError)
        assert error.worker == 'updateReceiver'
        assert client.deliverStreams == []
        assert any('Update receiver failed' in m for m in log.messages('ERROR'))

    @pytest.mark.asyncio
    async def test_seek_send_failure(self):
        """Failing to send the subscription request is fatal"""
        client = FakeOrdererClient()
        client.deliverSendError = StreamError('Deliver send failed: CANCELLED')
        _, signals, errors, _ = await runReceiver(client)

        assert signals == []
        assert isinstance(errors[0], StreamError)
        assert client.deliverStreams[0].cancelled

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self):
        """Cancelling a receiver blocked on recv cancels its stream"""
        client = FakeOrdererClient()
        signals: asyncio.Queue = asyncio.Queue()
        errors: asyncio.Queue = asyncio.Queue()
        receiver = UpdateReceiver('testchainid', signals, errors, client, RecordingLog())

        task = asyncio.create_task(receiver.run())
        await asyncio.sleep(0.05)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert client.deliverStreams[0].cancelled
        assert errors.empty()
