"""NetDrop peer discovery and WebRTC signaling server."""

__version__ = "0.1.0"
