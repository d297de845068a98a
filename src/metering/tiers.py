"""Subscription tier registry — static tier id -> {name, price, limit}.

Built once at process start and injected where needed. Adding a tier is a
data change: either extend ``DEFAULT_TIERS`` or point ``TIERS_FILE`` at a
YAML table.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Union

import yaml

from src.core.constants import UNLIMITED_LABEL
from src.core.logging import get_logger

log = get_logger(__name__)

UNLIMITED: float = math.inf

Limit = Union[int, float]


def is_unlimited(limit: Limit) -> bool:
    """True only for the unlimited sentinel, never for a reachable number."""
    return isinstance(limit, float) and math.isinf(limit) and limit > 0


def render_limit(value: Limit) -> int | str:
    """Limit or remaining count as it appears in API payloads."""
    return UNLIMITED_LABEL if is_unlimited(value) else int(value)


@dataclass(frozen=True)
class TierDefinition:
    """Immutable tier configuration."""

    tier_id: str
    name: str
    price: float
    limit: Limit

    def __post_init__(self) -> None:
        if not is_unlimited(self.limit) and (
            not isinstance(self.limit, int) or self.limit <= 0
        ):
            raise ValueError(
                f"Tier {self.tier_id!r} limit must be a positive integer or unlimited"
            )

    @property
    def unlimited(self) -> bool:
        return is_unlimited(self.limit)


DEFAULT_TIERS: tuple[TierDefinition, ...] = (
    TierDefinition(tier_id="free", name="Free", price=0, limit=6),
    TierDefinition(tier_id="pro", name="Pro", price=29, limit=10),
    TierDefinition(tier_id="developer", name="Developer", price=50, limit=UNLIMITED),
)


class TierRegistry:
    """Read-only lookup over a fixed set of tier definitions."""

    def __init__(self, tiers: Mapping[str, TierDefinition] | None = None) -> None:
        if tiers is None:
            tiers = {t.tier_id: t for t in DEFAULT_TIERS}
        self._tiers: Mapping[str, TierDefinition] = MappingProxyType(dict(tiers))

    @classmethod
    def from_definitions(cls, definitions: list[TierDefinition]) -> TierRegistry:
        return cls({d.tier_id: d for d in definitions})

    @classmethod
    def from_yaml(cls, path: str | Path) -> TierRegistry:
        """Load a tier table from YAML.

        Expected layout::

            tiers:
              free: {name: Free, price: 0, limit: 6}
              developer: {name: Developer, price: 50, limit: unlimited}
        """
        with open(path, encoding="utf-8") as fh:
            config: dict[str, object] = yaml.safe_load(fh) or {}

        raw_tiers = config.get("tiers")
        if not isinstance(raw_tiers, dict) or not raw_tiers:
            raise ValueError(f"No tiers defined in {path}")

        definitions: list[TierDefinition] = []
        for tier_id, spec in raw_tiers.items():
            raw_limit = spec.get("limit")
            limit: Limit = UNLIMITED if raw_limit == UNLIMITED_LABEL else int(raw_limit)
            definitions.append(
                TierDefinition(
                    tier_id=str(tier_id),
                    name=str(spec.get("name", tier_id)),
                    price=float(spec.get("price", 0)),
                    limit=limit,
                )
            )

        log.info("tiers_loaded", path=str(path), tiers=[d.tier_id for d in definitions])
        return cls.from_definitions(definitions)

    def definition_for(self, tier_id: str) -> TierDefinition | None:
        return self._tiers.get(tier_id)

    def limit_for(self, tier_id: str) -> Limit:
        """Request limit for the tier. Unknown tiers get zero quota."""
        definition = self._tiers.get(tier_id)
        if definition is None:
            log.warning("unknown_tier", tier=tier_id)
            return 0
        return definition.limit

    def is_known(self, tier_id: str) -> bool:
        return tier_id in self._tiers

    def by_price(self) -> list[TierDefinition]:
        return sorted(self._tiers.values(), key=lambda t: t.price)

    def __iter__(self) -> Iterator[TierDefinition]:
        return iter(self._tiers.values())

    def __len__(self) -> int:
        return len(self._tiers)
