"""
ClientFactory: Selects and instantiates orderer client adapters by URI scheme.
Purpose: Central registry and factory for all client implementations.
Usage: createClient(uri) -> OrdererClientBase

Property of Uncompromising Sensors LLC.
"""


# Imports
from typing import Dict, Type, Optional
from urllib.parse import urlparse

# Local imports
from .clientBase import OrdererClientBase


# Class
class ClientRegistry:
    """ClientRegistry() -> registry for URI scheme -> adapter class"""


    def __init__(self):
        self._adapters: Dict[str, Type[OrdererClientBase]] = {}


    def register(self, scheme: str, adapterClass: Type[OrdererClientBase]) -> None:
        if not isinstance(adapterClass, type) or not issubclass(adapterClass, OrdererClientBase):
            raise TypeError(f"Adapter {adapterClass} must be an OrdererClientBase subclass")
        self._adapters[scheme.lower()] = adapterClass


    def get(self, scheme: str) -> Optional[Type[OrdererClientBase]]:
        return self._adapters.get(scheme.lower())


    def schemes(self) -> list:
        return list(self._adapters.keys())


# Global default registry (can be replaced/injected for testing)
_defaultRegistry = ClientRegistry()


def registerClient(scheme: str, adapterClass: Type[OrdererClientBase]) -> None:
    _defaultRegistry.register(scheme, adapterClass)


def createClient(uri: str, registry: Optional[ClientRegistry] = None, log=None) -> OrdererClientBase:

    # Parse URI
    try:
        parsed = urlparse(uri)
    except ValueError as e:
        raise ValueError(f"Invalid URI '{uri}': {e}") from e

    if not parsed.scheme:
        raise ValueError(f"URI must include scheme (e.g., 'grpc://', 'grpcs://'): {uri}")

    # Select adapter
    reg = registry or _defaultRegistry
    adapterClass = reg.get(parsed.scheme)

    if not adapterClass:
        available = ', '.join(reg.schemes()) or 'none'
        raise ValueError(f"No client registered for scheme '{parsed.scheme}'. " f"Available schemes: {available}")

    return adapterClass(log=log)


def getDefaultRegistry() -> ClientRegistry:
    return _defaultRegistry
