"""Device-side services for a cloud connector: local protocol and request server, device requests, data point uploads and remote configuration state."""

__version__ = "1.0.0"