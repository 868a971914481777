"""Momentum server API: wire models and async HTTP client."""

from companion.api.client import MomentumClient, normalize_server_url

__all__ = ["MomentumClient", "normalize_server_url"]
