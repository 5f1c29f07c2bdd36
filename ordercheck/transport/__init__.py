"""ordercheck.transport - Orderer client layer.

Public API:
    - OrdererClientBase: Abstract base class for client adapters
    - BroadcastStream / DeliverStream: Stream handles owned by the opener
    - createClient: Factory function for creating clients from URIs
    - registerClient: Register custom client adapters
    - GrpcOrdererClient: gRPC implementation

Default Adapters:
    - GrpcOrdererClient: Registered for 'grpc' and 'grpcs' schemes

Usage:
    from ordercheck.transport import createClient

    client = createClient('grpc://localhost:7050', log=log)
    await client.connect('grpc://localhost:7050', dialTimeout=4.0)

    stream = await client.deliver()
    await stream.send(seekInfo)
    response = await stream.recv()

    await client.close()

Property of Uncompromising Sensors LLC.
"""

from .clientBase import OrdererClientBase, BroadcastStream, DeliverStream
from .clientFactory import (
    createClient,
    registerClient,
    ClientRegistry,
    getDefaultRegistry
)
from .grpcClient import GrpcOrdererClient

# Register default adapters
registerClient('grpc', GrpcOrdererClient)
registerClient('grpcs', GrpcOrdererClient)

__all__ = [
    'OrdererClientBase',
    'BroadcastStream',
    'DeliverStream',
    'createClient',
    'registerClient',
    'ClientRegistry',
    'getDefaultRegistry',
    'GrpcOrdererClient'
]
