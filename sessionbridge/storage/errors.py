from __future__ import annotations

from typing import Any, Dict, Optional

from sessionbridge.service.errors import StoreUnavailable


class KeyNotFound(Exception):
    """Raised by ``get`` when a key is absent or its TTL has elapsed."""

    def __init__(self, key: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(f"key not found: {key.split(':', 1)[0]}")
        self.key = key
        self.detail = detail or {}


__all__ = ["KeyNotFound", "StoreUnavailable"]
