"""
Registry Errors
===============

Numeric error codes and the two-variant outcome returned by registry calls.

Codes are stable: existing callers compare against the raw numbers.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass
from enum import IntEnum


class ErrorCode(IntEnum):
    """Error codes returned inside err(...) responses"""
    NOT_AUTHORIZED = 100   # caller is not the required principal
    DID_EXISTS = 101       # DID already registered
    DID_NOT_FOUND = 102
    CLAIM_NOT_FOUND = 103
    ALREADY_REVOKED = 104  # claim was revoked before


class RegistryError(Exception):
    """Raised by Response.unwrap() for an err(...) response"""

    def __init__(self, code: ErrorCode, message: str = ""):
        self.code = ErrorCode(code)
        self.message = message or self.code.name
        super().__init__(f"[{int(self.code)}] {self.message}")


class InvalidArgumentError(ValueError):
    """Malformed call argument; rejected before any state is touched"""


@dataclass(frozen=True)
class Response:
    """
    Outcome of a public registry call

    Either ok(value) or err(code). Two responses compare equal when
    both the variant and the payload match, so tests can write
    ``assert result == Response.ok(True)``.
    """
    is_ok: bool
    value: Any = None

    @classmethod
    def ok(cls, value: Any) -> "Response":
        return cls(is_ok=True, value=value)

    @classmethod
    def err(cls, code: ErrorCode) -> "Response":
        return cls(is_ok=False, value=ErrorCode(code))

    @property
    def is_err(self) -> bool:
        return not self.is_ok

    @property
    def code(self) -> Optional[ErrorCode]:
        """Error code, or None for an ok response"""
        return None if self.is_ok else self.value

    def unwrap(self) -> Any:
        """Return the ok payload or raise RegistryError"""
        if self.is_err:
            raise RegistryError(self.value)
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        if self.is_ok:
            value = self.value
            if hasattr(value, "to_dict"):
                value = value.to_dict()
            return {"ok": value}
        return {"err": int(self.value)}
