from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict
import json

@dataclass
class SendResult:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code <= 299

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        return json.loads(self.body)

__all__ = ['SendResult']
