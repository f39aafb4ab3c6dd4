"""
Selection Strategies (Picker)

Chooses the next (submodule, interaction schema) pair for a session.

Strategies are registered by name and can be switched at runtime without
touching callers:

    picker = PickerService(catalog, rng=random.Random(42))
    picker.register_strategy("weighted", MyStrategy(catalog))
    picker.set_strategy("weighted")

    result = picker.pick_next(PickContext(module_id="present-tense", ...))

Randomness is injected (any object with a `choice` method) so strategies are
deterministic under test.
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from lingo_engine.middleware.error_handling import ConfigurationError
from lingo_engine.services.learning.catalog import ContentCatalog

logger = logging.getLogger(__name__)

DEFAULT_STRATEGY = "random"


@dataclass(frozen=True)
class PickResult:
    submodule_id: str
    modal_schema_id: str


@dataclass(frozen=True)
class PickContext:
    """
    Inputs to a pick.

    Attributes:
        module_id: Module to pick from
        target_language: Language being learned
        source_language: Learner's language
        user_id: Learner, when known
        history: Earlier (submodule, schema, is_correct) outcomes this session
    """

    module_id: str
    target_language: str
    source_language: str = ""
    user_id: Optional[str] = None
    history: Sequence[Any] = field(default_factory=tuple)


class PickerStrategy(ABC):
    """Interface for selection algorithms."""

    @abstractmethod
    def pick_next(self, context: PickContext) -> PickResult:
        """Choose the next step for `context`."""


class RandomStrategy(PickerStrategy):
    """Uniform choice of submodule, then uniform choice of supported schema."""

    def __init__(self, catalog: ContentCatalog, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.rng = rng or random.Random()

    def pick_next(self, context: PickContext) -> PickResult:
        module = self.catalog.get_module(context.module_id)
        if module is None:
            raise ConfigurationError(f"Module not found: {context.module_id}")
        if not module.submodules:
            raise ConfigurationError(f"Module {module.id} has no submodules")

        submodule = self.rng.choice(module.submodules)
        if not submodule.supported_modal_schema_ids:
            raise ConfigurationError(
                f"Submodule {module.id}/{submodule.id} has no supported interaction schemas"
            )

        schema_id = self.rng.choice(submodule.supported_modal_schema_ids)
        return PickResult(submodule_id=submodule.id, modal_schema_id=schema_id)


class AdaptiveStrategy(PickerStrategy):
    """
    Placeholder for accuracy-weighted selection.

    Intended to favour (submodule, schema) pairs with lower historical
    accuracy. Currently delegates to RandomStrategy.
    """

    def __init__(self, catalog: ContentCatalog, rng: Optional[random.Random] = None):
        self._fallback = RandomStrategy(catalog, rng)

    def pick_next(self, context: PickContext) -> PickResult:
        return self._fallback.pick_next(context)


class PickerService:
    """Named-strategy dispatcher with one active strategy."""

    def __init__(
        self,
        catalog: ContentCatalog,
        rng: Optional[random.Random] = None,
        strategy: str = DEFAULT_STRATEGY,
    ):
        self._strategies: dict[str, PickerStrategy] = {
            "random": RandomStrategy(catalog, rng),
            "adaptive": AdaptiveStrategy(catalog, rng),
        }
        self._active = DEFAULT_STRATEGY
        self.set_strategy(strategy)

    @property
    def active_strategy(self) -> str:
        return self._active

    @property
    def strategy_names(self) -> list[str]:
        return sorted(self._strategies)

    def register_strategy(self, name: str, strategy: PickerStrategy) -> None:
        """Register (or replace) a named strategy."""
        if not name:
            raise ConfigurationError("Strategy name must not be empty")
        if not isinstance(strategy, PickerStrategy):
            raise ConfigurationError(f"Strategy {name} does not implement PickerStrategy")
        self._strategies[name] = strategy
        logger.info(f"Registered picker strategy: {name}")

    def set_strategy(self, name: str) -> None:
        """Switch the active strategy; unknown names are a configuration error."""
        if name not in self._strategies:
            raise ConfigurationError(
                f"Unknown picker strategy: {name}. Available: {self.strategy_names}"
            )
        if name != self._active:
            logger.info(f"Picker strategy switched: {self._active} -> {name}")
        self._active = name

    def pick_next(self, context: PickContext) -> PickResult:
        return self._strategies[self._active].pick_next(context)
