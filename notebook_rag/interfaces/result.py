"""Typed success/failure envelope returned by every provider adapter.

Embedding providers and vector backends never raise past their adapter
boundary.  They return a :class:`ProviderResult` instead, and the calling
service decides how to degrade (mock embedding, empty search result).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

_T = TypeVar("_T")


@dataclass(frozen=True)
class ProviderResult(Generic[_T]):
    """Outcome of one adapter call.

    Exactly one of ``value`` (when ``ok``) or ``error`` (when not ``ok``)
    is meaningful.
    """

    ok: bool
    value: _T | None = None
    error: str | None = None
    provider_name: str = ""

    @classmethod
    def success(cls, value: _T, provider_name: str = "") -> ProviderResult[_T]:
        return cls(ok=True, value=value, provider_name=provider_name)

    @classmethod
    def failure(cls, error: str, provider_name: str = "") -> ProviderResult[_T]:
        return cls(ok=False, error=error, provider_name=provider_name)

    def unwrap_or(self, default: _T) -> _T:
        """Return ``value`` on success, otherwise *default*."""
        if self.ok and self.value is not None:
            return self.value
        return default
