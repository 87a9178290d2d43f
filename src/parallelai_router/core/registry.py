from __future__ import annotations

from typing import Iterable, Iterator, List, Tuple

from parallelai_router.errors import ConfigurationError, ProviderNotFound
from parallelai_router.models import ProviderConfig


class ProviderRegistry:
    """
    Ordered, read-only table of providers.

    Built once at startup (see core.config.load_registry) and handed to the
    orchestrator and synthesizer. Enumeration order is the order results
    are reported in, so it must stay stable for the life of the process.
    """

    def __init__(self, providers: Iterable[ProviderConfig]):
        items: Tuple[ProviderConfig, ...] = tuple(providers)
        if not items:
            raise ConfigurationError("No providers configured")

        by_id = {}
        for p in items:
            if p.model_id in by_id:
                raise ConfigurationError(f"Duplicate model_id in provider table: {p.model_id}")
            by_id[p.model_id] = p

        self._providers = items
        self._by_id = by_id

    def list_providers(self) -> List[ProviderConfig]:
        return list(self._providers)

    def find_provider(self, model_id: str) -> ProviderConfig:
        try:
            return self._by_id[model_id]
        except KeyError:
            raise ProviderNotFound(model_id) from None

    def model_ids(self) -> List[str]:
        return [p.model_id for p in self._providers]

    def primary(self) -> ProviderConfig:
        # first entry is the designated high-capacity model
        return self._providers[0]

    def __len__(self) -> int:
        return len(self._providers)

    def __iter__(self) -> Iterator[ProviderConfig]:
        return iter(self._providers)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._by_id
