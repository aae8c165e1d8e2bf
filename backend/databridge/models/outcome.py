"""
Outcome Type

Explicit success/failure value for best-effort operations (store writes,
emails). Callers decide whether to act on a failure instead of having it
swallowed. Truthiness follows ok so `if await store.set_balance(x):` works.
"""
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort operation."""
    ok: bool
    value: Any = None
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "Outcome":
        return cls(ok=False, reason=reason)
