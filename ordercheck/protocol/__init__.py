"""ordercheck.protocol - atomic broadcast wire messages over the orderer protobuf schema."""

from .messages import (
    MAX_BLOCK_NUMBER,
    Status,
    Behavior,
    SeekKind,
    SeekPosition,
    SeekInfo,
    Payload,
    Envelope,
    Block,
    DeliverResponse,
    BroadcastResponse,
    unwrapTransaction
)

__all__ = [
    'MAX_BLOCK_NUMBER',
    'Status',
    'Behavior',
    'SeekKind',
    'SeekPosition',
    'SeekInfo',
    'Payload',
    'Envelope',
    'Block',
    'DeliverResponse',
    'BroadcastResponse',
    'unwrapTransaction'
]
