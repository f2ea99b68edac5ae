from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exchanges.registry import ExchangeRegistry

if TYPE_CHECKING:
    from .settings import Settings


@dataclass(slots=True)
class AppContainer:
    settings: "Settings"
    registry: ExchangeRegistry = field(init=False)

    def __post_init__(self) -> None:
        self.registry = ExchangeRegistry(self.settings)


def build_container(settings: "Settings") -> AppContainer:
    """Build application container holding the exchange registry."""
    return AppContainer(settings=settings)
