"""ordercheck - Verification harness for broadcast/deliver ordering services

Contains:
    - protocol: Envelope, Block, SeekInfo and delivery messages with their byte codec
    - transport: Orderer client adapters (gRPC)
    - core: UpdateReceiver, BroadcastSender, ResultAggregator and VerificationHarness
    - logging: Structured logging with run context
    - service: Launcher for the service under test
"""

__version__ = "0.1.0"
__versionInfo__ = (0, 1, 0)
__changelog__ = {
    "0.1.0": "Broadcast/deliver verification over gRPC with readiness handshake"
}
