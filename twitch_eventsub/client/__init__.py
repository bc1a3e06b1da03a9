"""EventSub REST collaborator: the protocol the listener consumes and an httpx implementation."""

from .helix import HelixEventSubClient
from .protocol import EventSubApi

__all__ = ["EventSubApi", "HelixEventSubClient"]
