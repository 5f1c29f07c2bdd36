"""Harness configuration defaults, used when no config file is present and as the merge base otherwise."""

DEFAULT_HARNESS_CONFIG = {
    "_comment_endpoint": "grpc://host:port or grpcs://host:port of the ordering service under test.",
    "_comment_timing": "All durations are seconds. waitSlots x slotTimeoutSeconds bounds the whole run.",
    "_comment_service": "Optional: command that starts the service under test. Placeholders: {dataDir} {config} {cert} {key} {listenAddr} {grpcAddr}.",
    "endpoint": "grpc://localhost:7101",
    "chainId": "testchainid",
    "dialTimeoutSeconds": 4.0,
    "warmupSeconds": 5.0,
    "readyTimeoutSeconds": 30.0,
    "useReadyHandshake": True,
    "waitSlots": 3,
    "slotTimeoutSeconds": 30.0,
    "neededUpdates": 2,
    "neededSent": 1,
    "payloadHex": "00010203",
    "rootCertPath": None,
    "serverHostOverride": None,
    "logging": {
        "level": "INFO",
        "logDir": None,
        "console": True,
        "utc": False
    },
    "service": {
        "command": [],
        "dataDir": None,
        "config": None,
        "cert": None,
        "key": None,
        "listenAddr": ":6101",
        "grpcAddr": ":7101",
        "startupTimeoutSeconds": 10.0
    }
}
