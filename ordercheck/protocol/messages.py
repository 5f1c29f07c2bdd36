"""
Atomic broadcast wire messages.

Envelope, Payload, Block, SeekPosition, SeekInfo, DeliverResponse and
BroadcastResponse as plain dataclasses over the protobuf schema:
    - toProto()/fromProto() convert to and from the schema message
    - toBytes()/fromBytes() are the protobuf wire encoding
    - oneof fields (seek position, delivery event) map to tagged variants

Any failure to decode raises DecodeError.

Property of Uncompromising Sensors LLC.
"""

# Imports
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

from google.protobuf.message import DecodeError as ProtobufDecodeError

# Local imports
from . import schema
from ..errors import DecodeError


# Stop position meaning "never stop": the largest unsigned 64-bit block number
MAX_BLOCK_NUMBER = 2**64 - 1


class Status(IntEnum):
    UNKNOWN = 0
    SUCCESS = 200
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    REQUEST_ENTITY_TOO_LARGE = 413
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503


class Behavior(IntEnum):
    BLOCK_UNTIL_READY = 0       # Wait for blocks that do not exist yet
    FAIL_IF_NOT_READY = 1       # Reply NOT_FOUND instead of waiting


class SeekKind(Enum):
    OLDEST = 'oldest'
    NEWEST = 'newest'
    SPECIFIED = 'specified'


# ===== Codec helpers =====
class _ProtoMessage:
    """toBytes/fromBytes shared by every wire message. Subclasses set _proto."""

    _proto = None

    def toProto(self):
        raise NotImplementedError

    def toBytes(self) -> bytes:
        return self.toProto().SerializeToString()

    @classmethod
    def fromBytes(cls, data: bytes):
        message = cls._proto()
        try:
            message.ParseFromString(data)
        except (ProtobufDecodeError, TypeError) as e:
            raise DecodeError(f"{cls.__name__}: not a valid message ({e})") from e
        try:
            return cls.fromProto(message)
        except ValueError as e:
            raise DecodeError(f"{cls.__name__}: malformed message ({e})") from e


# ===== Transactions =====
@dataclass
class Payload(_ProtoMessage):
    """Business data carried by a transaction."""

    _proto = schema.Payload

    data: bytes = b''

    def toProto(self):
        return schema.Payload(data=self.data)

    @classmethod
    def fromProto(cls, message) -> 'Payload':
        return cls(data=message.data)


@dataclass
class Envelope(_ProtoMessage):
    """Signed wrapper around a serialized Payload."""

    _proto = schema.Envelope

    payload: bytes = b''
    signature: bytes = b''

    @classmethod
    def wrap(cls, payload: Payload, signature: bytes = b'') -> 'Envelope':
        return cls(payload=payload.toBytes(), signature=signature)

    def unwrap(self) -> Payload:
        return Payload.fromBytes(self.payload)

    def toProto(self):
        return schema.Envelope(payload=self.payload, signature=self.signature)

    @classmethod
    def fromProto(cls, message) -> 'Envelope':
        return cls(payload=message.payload, signature=message.signature)


def unwrapTransaction(tx: bytes) -> Payload:
    """Decode one block transaction: bytes -> Envelope -> Payload. Raises DecodeError."""
    return Envelope.fromBytes(tx).unwrap()


@dataclass
class Block(_ProtoMessage):
    """Ordered batch of serialized Envelopes with its sequence number."""

    _proto = schema.Block

    number: int
    data: List[bytes] = field(default_factory=list)
    previousHash: bytes = b''
    dataHash: bytes = b''

    def toProto(self):
        message = schema.Block()
        message.header.SetInParent()
        message.header.number = self.number
        message.header.previous_hash = self.previousHash
        message.header.data_hash = self.dataHash
        message.data.data.extend(self.data)
        return message

    @classmethod
    def fromProto(cls, message) -> 'Block':
        if not message.HasField('header'):
            raise ValueError('block has no header')
        header = message.header
        return cls(number=header.number, data=list(message.data.data),
                   previousHash=header.previous_hash, dataHash=header.data_hash)


# ===== Subscription =====
@dataclass(frozen=True)
class SeekPosition:
    """Where to start or stop reading the block stream: oldest, newest or a specific number."""

    kind: SeekKind
    number: Optional[int] = None

    def __post_init__(self):
        if self.kind is SeekKind.SPECIFIED:
            if not isinstance(self.number, int) or isinstance(self.number, bool):
                raise ValueError(f"specified seek position needs an integer block number, got {self.number!r}")
            if not 0 <= self.number <= MAX_BLOCK_NUMBER:
                raise ValueError(f"block number {self.number} outside 0..{MAX_BLOCK_NUMBER}")
        elif self.number is not None:
            raise ValueError(f"{self.kind.value} seek position takes no block number")

    @classmethod
    def oldest(cls) -> 'SeekPosition':
        return cls(SeekKind.OLDEST)

    @classmethod
    def newest(cls) -> 'SeekPosition':
        return cls(SeekKind.NEWEST)

    @classmethod
    def specified(cls, number: int) -> 'SeekPosition':
        return cls(SeekKind.SPECIFIED, number)

    def toProto(self):
        # Empty variants still need presence set to select the oneof member
        message = schema.SeekPosition()
        variant = getattr(message, self.kind.value)
        variant.SetInParent()
        if self.kind is SeekKind.SPECIFIED:
            variant.number = self.number
        return message

    @classmethod
    def fromProto(cls, message) -> 'SeekPosition':
        variant = message.WhichOneof('Type')
        if variant is None:
            raise ValueError('seek position names no variant')
        kind = SeekKind(variant)
        if kind is SeekKind.SPECIFIED:
            return cls.specified(message.specified.number)
        return cls(kind)


@dataclass
class SeekInfo(_ProtoMessage):
    """Subscription request sent on the Deliver stream."""

    _proto = schema.SeekInfo

    chainId: str
    start: SeekPosition
    stop: SeekPosition
    behavior: Behavior = Behavior.BLOCK_UNTIL_READY

    def toProto(self):
        message = schema.SeekInfo(chain_id=self.chainId, behavior=int(self.behavior))
        message.start.CopyFrom(self.start.toProto())
        message.stop.CopyFrom(self.stop.toProto())
        return message

    @classmethod
    def fromProto(cls, message) -> 'SeekInfo':
        for bound in ('start', 'stop'):
            if not message.HasField(bound):
                raise ValueError(f"seek info has no {bound} position")
        return cls(chainId=message.chain_id,
                   start=SeekPosition.fromProto(message.start),
                   stop=SeekPosition.fromProto(message.stop),
                   behavior=Behavior(message.behavior))


# ===== Responses =====
@dataclass
class DeliverResponse(_ProtoMessage):
    """One delivery event: either a Block or a terminal Status."""

    _proto = schema.DeliverResponse

    block: Optional[Block] = None
    status: Optional[Status] = None

    def __post_init__(self):
        if (self.block is None) == (self.status is None):
            raise ValueError('DeliverResponse carries exactly one of block or status')

    @classmethod
    def ofBlock(cls, block: Block) -> 'DeliverResponse':
        return cls(block=block)

    @classmethod
    def ofStatus(cls, status: Status) -> 'DeliverResponse':
        return cls(status=Status(status))

    @property
    def variant(self) -> str:
        return 'block' if self.block is not None else 'status'

    def toProto(self):
        if self.block is not None:
            message = schema.DeliverResponse()
            message.block.CopyFrom(self.block.toProto())
            return message
        return schema.DeliverResponse(status=int(self.status))

    @classmethod
    def fromProto(cls, message) -> 'DeliverResponse':
        variant = message.WhichOneof('Type')
        if variant == 'block':
            return cls.ofBlock(Block.fromProto(message.block))
        if variant == 'status':
            return cls.ofStatus(Status(message.status))
        raise ValueError('delivery event carries neither block nor status')


@dataclass
class BroadcastResponse(_ProtoMessage):
    """Acknowledgment for one broadcast envelope."""

    _proto = schema.BroadcastResponse

    status: Status = Status.SUCCESS

    def toProto(self):
        return schema.BroadcastResponse(status=int(self.status))

    @classmethod
    def fromProto(cls, message) -> 'BroadcastResponse':
        return cls(status=Status(message.status))
