"""
Realtime package.

Public API:
- LiveLocationChannel (typed pub/sub over an injected transport)
- Messages: StatusChanged, LocationUpdated, encode_message, decode_message
- Transports: InMemoryHub / HubTransport, WebSocketTransport
"""
from .messages import (
    StatusChanged,
    LocationUpdated,
    ChannelMessage,
    encode_message,
    decode_message,
)
from .transports import InMemoryHub, HubTransport, WebSocketTransport
from .channel import LiveLocationChannel

__all__ = [
    "StatusChanged",
    "LocationUpdated",
    "ChannelMessage",
    "encode_message",
    "decode_message",
    "InMemoryHub",
    "HubTransport",
    "WebSocketTransport",
    "LiveLocationChannel",
]
