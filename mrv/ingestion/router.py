"""Header-driven adapter selection."""

from __future__ import annotations

from typing import Dict, Sequence, Tuple

from .adapters import FormatAdapter, GlobalSectorAdapter, OperatorGenericAdapter


class AdapterRegistry:
    """Fixed, ordered set of adapters; the first detector to match wins.

    When nothing matches the default adapter is returned so every row still
    gets a typed validation error instead of the whole upload being rejected.
    """

    def __init__(
        self,
        adapters: Sequence[FormatAdapter] | None = None,
        *,
        default: FormatAdapter | None = None,
    ) -> None:
        if adapters is None:
            adapters = (GlobalSectorAdapter(), OperatorGenericAdapter())
        if not adapters:
            raise ValueError("AdapterRegistry requires at least one adapter")
        self._adapters: Tuple[FormatAdapter, ...] = tuple(adapters)
        self._by_key: Dict[str, FormatAdapter] = {adapter.key: adapter for adapter in self._adapters}
        self.default = default or self._adapters[0]

    @property
    def adapters(self) -> Tuple[FormatAdapter, ...]:
        return self._adapters

    def detect_adapter(self, headers: Sequence[str]) -> FormatAdapter:
        for adapter in self._adapters:
            if adapter.detect(headers):
                return adapter
        return self.default

    def resolve(self, key: str) -> FormatAdapter:
        try:
            return self._by_key[key]
        except KeyError as exc:
            raise ValueError(
                f"No adapter registered under '{key}'. Known adapters: {sorted(self._by_key)}"
            ) from exc


_DEFAULT_REGISTRY = AdapterRegistry()


def detect_adapter(headers: Sequence[str]) -> FormatAdapter:
    return _DEFAULT_REGISTRY.detect_adapter(headers)


__all__ = ["AdapterRegistry", "detect_adapter"]
