from .dispatcher import HTTPDispatcher
from .provider import Provider, new

__all__ = ["HTTPDispatcher", "Provider", "new"]
