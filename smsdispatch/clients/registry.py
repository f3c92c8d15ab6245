"""Process-wide map from sub-provider tag to transformer.

Writes copy the mapping under a lock and swap it in; reads are a plain dict
lookup on the current snapshot, so concurrent senders never block each other.
Call `freeze()` once start-up registration is done to reject late writes.
"""
from __future__ import annotations

import threading
from typing import Dict, List, Optional

from .base import Transformer


class RegistryFrozenError(RuntimeError):
    pass


class TransformerRegistry:
    def __init__(self):
        self._transformers: Dict[str, Transformer] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(self, sub_provider: str, transformer: Transformer) -> None:
        if not sub_provider:
            raise ValueError("sub-provider tag must not be empty")
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(f"registry is frozen; cannot register {sub_provider!r}")
            updated = dict(self._transformers)
            updated[sub_provider] = transformer
            self._transformers = updated

    def get(self, sub_provider: str) -> Optional[Transformer]:
        return self._transformers.get(sub_provider)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def tags(self) -> List[str]:
        return sorted(self._transformers)

    def __contains__(self, sub_provider: object) -> bool:
        return sub_provider in self._transformers

    def __len__(self) -> int:
        return len(self._transformers)


registry = TransformerRegistry()


def register_transformer(sub_provider: str, transformer: Transformer) -> None:
    registry.register(sub_provider, transformer)


def get_transformer(sub_provider: str) -> Optional[Transformer]:
    return registry.get(sub_provider)


__all__ = [
    "TransformerRegistry",
    "RegistryFrozenError",
    "registry",
    "register_transformer",
    "get_transformer",
]
