"""Outbound HTTP access to third-party APIs."""

from .client import HttpClient, UpstreamClient

__all__ = ["HttpClient", "UpstreamClient"]
