"""Tier alias resolution.

A tier alias ("small", "medium", "large") is a short symbolic name mapped to a
concrete backend model identifier. Anything that is not a configured tier is
passed through untouched: the backend is the authority on whether a model
exists.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class TierModel:
    """A backend model referenced by the tier table."""

    id: str
    tier: str


class TierTable(Mapping[str, str]):
    """Immutable tier-to-model mapping, built once at startup."""

    def __init__(self, tiers: Mapping[str, str]) -> None:
        self._tiers = MappingProxyType(dict(tiers))

    def __getitem__(self, tier: str) -> str:
        return self._tiers[tier]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __repr__(self) -> str:
        return f"TierTable({dict(self._tiers)!r})"

    def as_dict(self) -> dict[str, str]:
        """Return a fresh copy of the tier mapping."""
        return dict(self._tiers)

    def models(self) -> list[TierModel]:
        """List distinct backend models in tier order.

        A model shared by several tiers is reported once, annotated with the
        first tier that maps to it.
        """
        seen: set[str] = set()
        models: list[TierModel] = []
        for tier, model_id in self._tiers.items():
            if model_id not in seen:
                seen.add(model_id)
                models.append(TierModel(id=model_id, tier=tier))
        return models


class ModelResolver:
    """Maps a tier alias or explicit model name to a backend model id."""

    def __init__(self, tiers: TierTable) -> None:
        self.tiers = tiers

    def resolve(self, model: str) -> str:
        """Resolve ``model`` to a concrete backend model identifier.

        Returns the tier's model when ``model`` names a configured tier,
        otherwise ``model`` itself.
        """
        return self.tiers.get(model, model)
