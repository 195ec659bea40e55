from __future__ import annotations

import uuid
from typing import Protocol


class IdentifierGenerator(Protocol):
    def generate(self) -> str: ...


class UuidIdentifierGenerator:
    def generate(self) -> str:
        return str(uuid.uuid4())
