"""Explicitly constructed connector registry."""

from __future__ import annotations

from typing import Iterable, Iterator

from ..engine.fetcher import Fetcher
from .base import Connector
from .sites import AthomeConnector, KenbiyaConnector, SuumoConnector


class ConnectorRegistry:
    """Map portal keys to connector instances, keeping registration order."""

    def __init__(self, connectors: Iterable[Connector] = ()) -> None:
        self._connectors: dict[str, Connector] = {}
        for connector in connectors:
            self.register(connector)

    def register(self, connector: Connector) -> None:
        key = connector.key.strip().lower()
        if not key:
            raise ValueError(f"Connector {type(connector).__name__} has no key")
        self._connectors[key] = connector

    def get(self, key: str) -> Connector | None:
        return self._connectors.get(key.strip().lower())

    def get_many(self, keys: Iterable[str]) -> list[Connector]:
        """Connectors for the known keys, in the order given."""

        found = (self.get(key) for key in keys)
        return [connector for connector in found if connector is not None]

    def all_keys(self) -> list[str]:
        return list(self._connectors)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __iter__(self) -> Iterator[Connector]:
        return iter(self._connectors.values())

    def __len__(self) -> int:
        return len(self._connectors)


def build_registry(fetcher: Fetcher) -> ConnectorRegistry:
    """Registry of every bundled portal connector sharing one fetcher."""

    return ConnectorRegistry(
        [
            AthomeConnector(fetcher),
            SuumoConnector(fetcher),
            KenbiyaConnector(fetcher),
        ]
    )


__all__ = ["ConnectorRegistry", "build_registry"]
