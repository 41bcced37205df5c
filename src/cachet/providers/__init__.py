"""Transport implementations."""

from .base import Transport
from .mock import MockTransport
from .openai import HttpTransport

__all__ = [
    "HttpTransport",
    "MockTransport",
    "Transport",
]
