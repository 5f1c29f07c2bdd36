"""
gRPC Orderer Client Adapter

API:
    connect(uri, **opts)   # Dial the service, blocking until the channel is ready
    broadcast()            # Open a Broadcast stream (Envelope out, one ack read on close)
    deliver()              # Open a Deliver stream (SeekInfo out, DeliverResponse in)
    close()                # Cancel open streams and close the channel

Options:
    dialTimeout (float, default: 4.0)     bound on dial and stream open
    rootCertPath (str)                    PEM root certificates for grpcs://
    serverHostOverride (str)              TLS target name override for grpcs://
    channelOptions (list)                 extra grpc channel arguments

URI Schemes:
    grpc://host:port       plaintext
    grpcs://host:port      TLS

Design:
    - Service 'orderer.AtomicBroadcast', both methods bidirectional streams;
      the service name comes from the protobuf service descriptor
    - Requests are serialized with the protobuf codec in ordercheck.protocol;
      responses arrive as raw bytes and are decoded here so decode failures
      surface as StreamError
    - grpc failures are translated into ServiceConnectionError / StreamError

Property of Uncompromising Sensors LLC.
"""


# Imports
import asyncio, time
from pathlib import Path
from typing import Optional, Set
from urllib.parse import urlparse

import grpc

# Local imports
from .clientBase import OrdererClientBase, BroadcastStream, DeliverStream
from ..errors import DecodeError, ServiceConnectionError, StreamError
from ..protocol import BroadcastResponse, DeliverResponse, Envelope, SeekInfo
from ..protocol.schema import ATOMIC_BROADCAST


SERVICE_NAME = ATOMIC_BROADCAST.full_name
BROADCAST_METHOD = f'/{SERVICE_NAME}/Broadcast'
DELIVER_METHOD = f'/{SERVICE_NAME}/Deliver'
DEFAULT_PORT = 7050

# Errors a grpc.aio streaming call raises on write/read/done_writing
_CALL_ERRORS = (grpc.RpcError, grpc.aio.UsageError, asyncio.InvalidStateError)


def describeRpcError(e: BaseException) -> str:
    if isinstance(e, grpc.aio.AioRpcError):
        return f"{e.code().name}: {e.details()}"
    return f"{type(e).__name__}: {e}"


class GrpcBroadcastStream(BroadcastStream):
    """Broadcast call wrapper. Owned by the worker that opened it."""

    def __init__(self, call, client: 'GrpcOrdererClient', ackTimeout: float):
        self._call = call
        self._client = client
        self._ackTimeout = ackTimeout

    async def send(self, envelope: Envelope) -> None:
        try:
            await self._call.write(envelope)
        except _CALL_ERRORS as e:
            raise StreamError(f"Broadcast send failed: {describeRpcError(e)}") from e

    async def close(self) -> Optional[BroadcastResponse]:
        try:
            await self._call.done_writing()
            raw = await asyncio.wait_for(self._call.read(), timeout=self._ackTimeout)
        except asyncio.TimeoutError as e:
            raise StreamError(f"No broadcast acknowledgment within {self._ackTimeout}s") from e
        except _CALL_ERRORS as e:
            raise StreamError(f"Broadcast half-close failed: {describeRpcError(e)}") from e

        if raw is grpc.aio.EOF:
            return None

        try:
            return BroadcastResponse.fromBytes(raw)
        except DecodeError as e:
            raise StreamError(f"Undecodable broadcast acknowledgment: {e}") from e

    def cancel(self) -> None:
        self._call.cancel()
        self._client._untrack(self)


class GrpcDeliverStream(DeliverStream):
    """Deliver call wrapper. Owned by the worker that opened it."""

    def __init__(self, call, client: 'GrpcOrdererClient'):
        self._call = call
        self._client = client

    async def send(self, seekInfo: SeekInfo) -> None:
        try:
            await self._call.write(seekInfo)
        except _CALL_ERRORS as e:
            raise StreamError(f"Deliver send failed: {describeRpcError(e)}") from e

    async def recv(self) -> DeliverResponse:
        try:
            raw = await self._call.read()
        except _CALL_ERRORS as e:
            raise StreamError(f"Deliver receive failed: {describeRpcError(e)}") from e

        if raw is grpc.aio.EOF:
            raise StreamError('Deliver stream closed by service')

        try:
            return DeliverResponse.fromBytes(raw)
        except DecodeError as e:
            raise StreamError(f"Undecodable delivery event: {e}") from e

    def cancel(self) -> None:
        self._call.cancel()
        self._client._untrack(self)


# Class
class GrpcOrdererClient(OrdererClientBase):
    """gRPC client for the Broadcast/Deliver service."""

    # Valid option keys for this adapter
    _VALID_CONNECT_OPTS = {'dialTimeout', 'rootCertPath', 'serverHostOverride', 'channelOptions'}


    def __init__(self, log=None):
        super().__init__(log=log)
        self._uri: Optional[str] = None
        self._channel: Optional[grpc.aio.Channel] = None
        self._dialTimeout: float = 4.0
        self._broadcastMethod = None
        self._deliverMethod = None


    @property
    def clientType(self) -> str:
        return 'grpc'


    async def connect(self, uri: str, **opts) -> None:

        # Ensure ready for connection
        if self._state == 'READY':
            raise RuntimeError('GrpcOrdererClient already connected')

        # Validate options
        self._validateOptions(opts, self._VALID_CONNECT_OPTS)

        # Parse URI
        parsed = urlparse(uri)
        scheme = parsed.scheme.lower()
        if scheme not in ('grpc', 'grpcs'):
            raise ValueError(f"Unsupported gRPC scheme '{scheme}'. Supported: grpc, grpcs")

        target = self._buildTarget(parsed)
        self._dialTimeout = float(opts.get('dialTimeout', 4.0))
        channelOptions = list(opts.get('channelOptions', []))

        # Build channel
        if scheme == 'grpcs':
            rootCerts = None
            if opts.get('rootCertPath'):
                rootCerts = Path(opts['rootCertPath']).read_bytes()
            if opts.get('serverHostOverride'):
                channelOptions.append(('grpc.ssl_target_name_override', opts['serverHostOverride']))
            credentials = grpc.ssl_channel_credentials(root_certificates=rootCerts)
            channel = grpc.aio.secure_channel(target, credentials, options=channelOptions)
        else:
            channel = grpc.aio.insecure_channel(target, options=channelOptions)

        self._endpoint = target

        # Block until the channel is ready, bounded by the dial timeout
        try:
            await asyncio.wait_for(channel.channel_ready(), timeout=self._dialTimeout)
        except asyncio.TimeoutError as e:
            await channel.close()
            self._log(f'Dial timed out after {self._dialTimeout}s', level='ERROR', event='connectTimeout')
            raise ServiceConnectionError(f"Failed to connect to {target} within {self._dialTimeout}s") from e
        except grpc.RpcError as e:
            await channel.close()
            self._log(f'Dial failed: {describeRpcError(e)}', level='ERROR', event='connectError')
            raise ServiceConnectionError(f"Failed to connect to {target}: {describeRpcError(e)}") from e

        # Protobuf bytes out; responses stay raw and are decoded in the stream wrappers
        self._broadcastMethod = channel.stream_stream(BROADCAST_METHOD, request_serializer=Envelope.toBytes)
        self._deliverMethod = channel.stream_stream(DELIVER_METHOD, request_serializer=SeekInfo.toBytes)

        # Store channel and mark ready
        self._channel = channel
        self._uri = uri
        self._state = 'READY'
        self._connectedAt = time.time()

        self._log('GrpcOrdererClient connected', event='connect')


    async def broadcast(self) -> GrpcBroadcastStream:
        call = await self._openCall(self._broadcastMethod, 'Broadcast')
        stream = GrpcBroadcastStream(call, self, ackTimeout=self._dialTimeout)
        self._track(stream)
        return stream


    async def deliver(self) -> GrpcDeliverStream:
        call = await self._openCall(self._deliverMethod, 'Deliver')
        stream = GrpcDeliverStream(call, self)
        self._track(stream)
        return stream


    async def close(self, timeout: Optional[float] = None) -> None:

        # Validate state
        if self._state == 'CLOSED':
            return
        self._state = 'CLOSED'

        # Cancel streams still owned by running workers
        self._cancelStreams()

        if self._channel:
            try:
                await self._channel.close(grace=timeout)
            except grpc.RpcError as e:
                self._log(f'Close error: {describeRpcError(e)}', level='WARNING')

        self._channel = None
        self._broadcastMethod = None
        self._deliverMethod = None

        self._log('GrpcOrdererClient closed', event='close')


    def status(self) -> dict:
        base = super().status()
        base['dialTimeout'] = self._dialTimeout
        if self._channel:
            base['channelState'] = self._channel.get_state(try_to_connect=False).name
        else:
            base['channelState'] = None
        return base


    # ===== Internal Methods =====
    async def _openCall(self, method, name: str):

        if self._state != 'READY' or method is None:
            raise ServiceConnectionError(f"Cannot open {name} stream: client not connected")

        call = method()
        try:
            await asyncio.wait_for(call.wait_for_connection(), timeout=self._dialTimeout)
        except asyncio.TimeoutError as e:
            call.cancel()
            raise ServiceConnectionError(f"{name} stream not established within {self._dialTimeout}s") from e
        except grpc.RpcError as e:
            call.cancel()
            raise ServiceConnectionError(f"Failed to open {name} stream: {describeRpcError(e)}") from e

        self._log(f'{name} stream opened', level='DEBUG', event='streamOpen')
        return call


    def _buildTarget(self, parsed) -> str:
        host = parsed.hostname or 'localhost'
        port = parsed.port or DEFAULT_PORT
        if ':' in host:
            host = f'[{host}]'
        return f'{host}:{port}'


    def _validateOptions(self, opts: dict, validKeys: Set[str]):
        unknown = set(opts.keys()) - validKeys
        if unknown:
            raise ValueError(f"Unknown options for GrpcOrdererClient: {unknown}. " f"Valid options: {validKeys}")
