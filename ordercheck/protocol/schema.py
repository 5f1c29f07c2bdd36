"""
Protobuf schema of the atomic broadcast service.

Builds the 'common' and 'orderer' proto3 packages (common.Envelope,
common.Block, orderer.SeekInfo, orderer.DeliverResponse, ...) and the
orderer.AtomicBroadcast service descriptor in a private descriptor pool, and
exposes the generated message classes. Field numbers follow the orderer's
.proto definitions so the bytes interoperate with the real service.

Property of Uncompromising Sensors LLC.
"""

# Imports
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory


_Field = descriptor_pb2.FieldDescriptorProto

COMMON_FILE = 'common/common.proto'
ORDERER_FILE = 'orderer/ab.proto'


# ===== Descriptor helpers =====
def _field(name, number, kind, typeName=None, repeated=False, oneofIndex=None):
    field = _Field(name=name, number=number, type=kind,
                   label=_Field.LABEL_REPEATED if repeated else _Field.LABEL_OPTIONAL)
    if typeName:
        field.type_name = typeName
    if oneofIndex is not None:
        field.oneof_index = oneofIndex
    return field


def _bytes(name, number, repeated=False):
    return _field(name, number, _Field.TYPE_BYTES, repeated=repeated)


def _message(name, number, typeName, oneofIndex=None):
    return _field(name, number, _Field.TYPE_MESSAGE, typeName, oneofIndex=oneofIndex)


def _enum(name, values):
    return descriptor_pb2.EnumDescriptorProto(
        name=name, value=[descriptor_pb2.EnumValueDescriptorProto(name=k, number=v) for k, v in values])


def _commonFile() -> descriptor_pb2.FileDescriptorProto:
    return descriptor_pb2.FileDescriptorProto(
        name=COMMON_FILE, package='common', syntax='proto3',
        enum_type=[_enum('Status', [
            ('UNKNOWN', 0), ('SUCCESS', 200), ('BAD_REQUEST', 400), ('FORBIDDEN', 403), ('NOT_FOUND', 404),
            ('REQUEST_ENTITY_TOO_LARGE', 413), ('INTERNAL_SERVER_ERROR', 500), ('SERVICE_UNAVAILABLE', 503)
        ])],
        message_type=[
            descriptor_pb2.DescriptorProto(name='Header', field=[
                _bytes('channel_header', 1), _bytes('signature_header', 2)]),
            descriptor_pb2.DescriptorProto(name='Payload', field=[
                _message('header', 1, '.common.Header'), _bytes('data', 2)]),
            descriptor_pb2.DescriptorProto(name='Envelope', field=[
                _bytes('payload', 1), _bytes('signature', 2)]),
            descriptor_pb2.DescriptorProto(name='BlockHeader', field=[
                _field('number', 1, _Field.TYPE_UINT64), _bytes('previous_hash', 2), _bytes('data_hash', 3)]),
            descriptor_pb2.DescriptorProto(name='BlockData', field=[_bytes('data', 1, repeated=True)]),
            descriptor_pb2.DescriptorProto(name='BlockMetadata', field=[_bytes('metadata', 1, repeated=True)]),
            descriptor_pb2.DescriptorProto(name='Block', field=[
                _message('header', 1, '.common.BlockHeader'), _message('data', 2, '.common.BlockData'),
                _message('metadata', 3, '.common.BlockMetadata')]),
        ])


def _ordererFile() -> descriptor_pb2.FileDescriptorProto:
    typeOneof = [descriptor_pb2.OneofDescriptorProto(name='Type')]
    return descriptor_pb2.FileDescriptorProto(
        name=ORDERER_FILE, package='orderer', syntax='proto3', dependency=[COMMON_FILE],
        message_type=[
            descriptor_pb2.DescriptorProto(name='BroadcastResponse', field=[
                _field('status', 1, _Field.TYPE_ENUM, '.common.Status')]),
            descriptor_pb2.DescriptorProto(name='SeekNewest'),
            descriptor_pb2.DescriptorProto(name='SeekOldest'),
            descriptor_pb2.DescriptorProto(name='SeekSpecified', field=[
                _field('number', 1, _Field.TYPE_UINT64)]),
            descriptor_pb2.DescriptorProto(name='SeekPosition', oneof_decl=typeOneof, field=[
                _message('newest', 1, '.orderer.SeekNewest', oneofIndex=0),
                _message('oldest', 2, '.orderer.SeekOldest', oneofIndex=0),
                _message('specified', 3, '.orderer.SeekSpecified', oneofIndex=0)]),
            descriptor_pb2.DescriptorProto(
                name='SeekInfo',
                enum_type=[_enum('SeekBehavior', [('BLOCK_UNTIL_READY', 0), ('FAIL_IF_NOT_READY', 1)])],
                field=[
                    _field('chain_id', 1, _Field.TYPE_STRING),
                    _message('start', 2, '.orderer.SeekPosition'),
                    _message('stop', 3, '.orderer.SeekPosition'),
                    _field('behavior', 4, _Field.TYPE_ENUM, '.orderer.SeekInfo.SeekBehavior')]),
            descriptor_pb2.DescriptorProto(name='DeliverResponse', oneof_decl=typeOneof, field=[
                _field('status', 1, _Field.TYPE_ENUM, '.common.Status', oneofIndex=0),
                _message('block', 2, '.common.Block', oneofIndex=0)]),
        ],
        service=[descriptor_pb2.ServiceDescriptorProto(name='AtomicBroadcast', method=[
            descriptor_pb2.MethodDescriptorProto(name='Broadcast', input_type='.common.Envelope',
                                                 output_type='.orderer.BroadcastResponse',
                                                 client_streaming=True, server_streaming=True),
            descriptor_pb2.MethodDescriptorProto(name='Deliver', input_type='.orderer.SeekInfo',
                                                 output_type='.orderer.DeliverResponse',
                                                 client_streaming=True, server_streaming=True),
        ])])


# ===== Pool and message classes =====
POOL = descriptor_pool.DescriptorPool()
for _file in (_commonFile(), _ordererFile()):
    POOL.AddSerializedFile(_file.SerializeToString())


def _messageClass(fullName: str):
    return message_factory.GetMessageClass(POOL.FindMessageTypeByName(fullName))


Header = _messageClass('common.Header')
Payload = _messageClass('common.Payload')
Envelope = _messageClass('common.Envelope')
BlockHeader = _messageClass('common.BlockHeader')
BlockData = _messageClass('common.BlockData')
BlockMetadata = _messageClass('common.BlockMetadata')
Block = _messageClass('common.Block')

BroadcastResponse = _messageClass('orderer.BroadcastResponse')
SeekNewest = _messageClass('orderer.SeekNewest')
SeekOldest = _messageClass('orderer.SeekOldest')
SeekSpecified = _messageClass('orderer.SeekSpecified')
SeekPosition = _messageClass('orderer.SeekPosition')
SeekInfo = _messageClass('orderer.SeekInfo')
DeliverResponse = _messageClass('orderer.DeliverResponse')

ATOMIC_BROADCAST = POOL.FindServiceByName('orderer.AtomicBroadcast')
