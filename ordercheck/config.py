"""Load the harness config file, merged over the immutable defaults and validated into a HarnessConfig."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

import orjson

from .configDefaults import DEFAULT_HARNESS_CONFIG
from .errors import ConfigError
from .transport import getDefaultRegistry


@dataclass
class LoggingSettings:
    level: str = 'INFO'
    logDir: Optional[str] = None
    console: bool = True
    utc: bool = False


@dataclass
class ServiceSettings:
    command: List[str] = field(default_factory=list)
    dataDir: Optional[str] = None
    config: Optional[str] = None
    cert: Optional[str] = None
    key: Optional[str] = None
    listenAddr: Optional[str] = None
    grpcAddr: Optional[str] = None
    startupTimeoutSeconds: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.command)


@dataclass
class HarnessConfig:
    endpoint: str
    chainId: str
    dialTimeoutSeconds: float
    warmupSeconds: float
    readyTimeoutSeconds: float
    useReadyHandshake: bool
    waitSlots: int
    slotTimeoutSeconds: float
    neededUpdates: int
    neededSent: int
    payloadHex: str
    rootCertPath: Optional[str] = None
    serverHostOverride: Optional[str] = None
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    service: ServiceSettings = field(default_factory=ServiceSettings)

    @property
    def payloadData(self) -> bytes:
        return bytes.fromhex(self.payloadHex)

    def connectOptions(self) -> dict:
        opts = {'dialTimeout': self.dialTimeoutSeconds}
        if self.rootCertPath:
            opts['rootCertPath'] = self.rootCertPath
        if self.serverHostOverride:
            opts['serverHostOverride'] = self.serverHostOverride
        return opts

    @classmethod
    def fromDict(cls, config: dict) -> HarnessConfig:
        _validateConfig(config)
        values = _stripComments(config)
        values['logging'] = LoggingSettings(**_stripComments(values['logging']))
        values['service'] = ServiceSettings(**_stripComments(values['service']))
        return cls(**values)


def _stripComments(section: dict) -> dict:
    return {k: v for k, v in section.items() if not k.startswith('_comment')}


def mergeConfig(base: dict, override: dict) -> dict:
    """Deep-merge override onto a copy of base. Nested dicts merge, everything else replaces."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = mergeConfig(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _checkKeys(section: dict, allowed, where: str) -> None:
    unknown = {k for k in section if k not in allowed and not k.startswith('_comment')}
    if unknown:
        raise ConfigError(f"Unknown {where} keys: {sorted(unknown)}")


def _requireNumber(config: dict, key: str, *, allowZero: bool = False, integer: bool = False) -> None:
    value = config.get(key)
    kinds = (int,) if integer else (int, float)
    if isinstance(value, bool) or not isinstance(value, kinds):
        raise ConfigError(f"'{key}' must be {'an integer' if integer else 'a number'}, got {value!r}")
    if value < 0 or (value == 0 and not allowZero):
        raise ConfigError(f"'{key}' must be {'>= 0' if allowZero else '> 0'}, got {value!r}")


def _validateConfig(config: dict) -> None:
    if not isinstance(config, dict):
        raise ConfigError('Harness config is not a JSON object')

    _checkKeys(config, DEFAULT_HARNESS_CONFIG, 'config')

    endpoint = config.get('endpoint')
    schemes = getDefaultRegistry().schemes()
    try:
        parsed = urlparse(endpoint) if isinstance(endpoint, str) else None
    except ValueError:
        parsed = None
    if parsed is None or parsed.scheme.lower() not in schemes or not parsed.netloc:
        raise ConfigError(f"'endpoint' must be a URI like grpc://host:port (schemes: {', '.join(schemes)}), "
                          f"got {endpoint!r}")

    chainId = config.get('chainId')
    if not isinstance(chainId, str) or not chainId:
        raise ConfigError(f"'chainId' must be a non-empty string, got {chainId!r}")

    for key in ('dialTimeoutSeconds', 'readyTimeoutSeconds', 'slotTimeoutSeconds'):
        _requireNumber(config, key)
    _requireNumber(config, 'warmupSeconds', allowZero=True)
    _requireNumber(config, 'waitSlots', integer=True)
    _requireNumber(config, 'neededUpdates', integer=True)
    _requireNumber(config, 'neededSent', integer=True, allowZero=True)
    if config['neededSent'] > 1:
        raise ConfigError(f"'neededSent' is at most 1 (a single broadcast per run), got {config['neededSent']}")

    if not isinstance(config.get('useReadyHandshake'), bool):
        raise ConfigError("'useReadyHandshake' must be true or false")

    payloadHex = config.get('payloadHex')
    try:
        bytes.fromhex(payloadHex)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'payloadHex' must be a hex string, got {payloadHex!r}") from e

    for key in ('rootCertPath', 'serverHostOverride'):
        if config.get(key) is not None and not isinstance(config[key], str):
            raise ConfigError(f"'{key}' must be a string or null")

    logging = config.get('logging')
    if not isinstance(logging, dict):
        raise ConfigError("Missing 'logging' section")
    _checkKeys(logging, DEFAULT_HARNESS_CONFIG['logging'], 'logging')

    service = config.get('service')
    if not isinstance(service, dict):
        raise ConfigError("Missing 'service' section")
    _checkKeys(service, DEFAULT_HARNESS_CONFIG['service'], 'service')
    command = service.get('command')
    if not isinstance(command, list) or not all(isinstance(part, str) for part in command):
        raise ConfigError("'service.command' must be a list of strings")
    _requireNumber(service, 'startupTimeoutSeconds')


def loadConfig(path: Optional[str | Path] = None, log: Optional[object] = None,
               overrides: Optional[dict] = None) -> HarnessConfig:
    """Load a harness config file. A missing file means defaults; a broken one raises ConfigError."""
    config = copy.deepcopy(DEFAULT_HARNESS_CONFIG)

    if path is not None:
        cfgPath = Path(path)
        if cfgPath.exists():
            try:
                fileConfig = orjson.loads(cfgPath.read_bytes())
            except (OSError, orjson.JSONDecodeError) as e:
                if log:
                    log.error('Failed to load harness config', event='harnessConfigLoadError', component='HarnessConfig',
                              configPath=str(cfgPath), errorClass=type(e).__name__, errorMsg=str(e))
                raise ConfigError(f"Cannot read config {cfgPath}: {e}") from e
            if not isinstance(fileConfig, dict):
                raise ConfigError(f"Config {cfgPath} is not a JSON object")
            config = mergeConfig(config, fileConfig)
            if log:
                log.info('Loaded harness config', event='harnessConfigLoad', component='HarnessConfig',
                         configPath=str(cfgPath))
        elif log:
            log.warning('Harness config not found, using defaults', event='harnessConfigDefaults',
                        component='HarnessConfig', configPath=str(cfgPath))

    if overrides:
        config = mergeConfig(config, overrides)

    return HarnessConfig.fromDict(config)
