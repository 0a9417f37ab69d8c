"""
Binder registry.

Holds every binder available to the process and knows which one is active.
Registration happens once at startup.
"""
import logging
from typing import Dict, List, Set

from .base import Binder
from ..core.errors import BinderNotFoundError, ConfigurationError

logger = logging.getLogger(__name__)


class BinderRegistry:
    """Registry of broker binders with exactly one active entry."""

    def __init__(self):
        self._binders: Dict[str, Binder] = {}
        self._active: Set[str] = set()

    def register(self, binder_id: str, binder: Binder, active: bool = False) -> None:
        """
        Register a binder under an id.

        Args:
            binder_id: Identifier such as "kafka" or "rabbit"
            binder: The binder implementation
            active: Mark this binder as the active one

        Raises:
            ConfigurationError: If the id is already registered
        """
        if not binder_id:
            raise ConfigurationError("Binder id must not be empty")
        if binder_id in self._binders:
            raise ConfigurationError(f"Binder '{binder_id}' is already registered")

        self._binders[binder_id] = binder
        if active:
            self._active.add(binder_id)
        logger.debug(f"Registered binder '{binder_id}' ({binder.name}, active={active})")

    def activate(self, binder_id: str) -> None:
        """Mark a registered binder active."""
        self.resolve(binder_id)
        self._active.add(binder_id)

    def resolve(self, binder_id: str) -> Binder:
        """
        Look up a binder by id.

        Raises:
            BinderNotFoundError: If no binder is registered under that id
        """
        try:
            return self._binders[binder_id]
        except KeyError:
            raise BinderNotFoundError(f"No binder registered as '{binder_id}'") from None

    @property
    def active_binder_id(self) -> str:
        """
        Id of the single active binder.

        Raises:
            ConfigurationError: If zero or several binders are active
        """
        if not self._active:
            raise ConfigurationError("No active binder configured")
        if len(self._active) > 1:
            raise ConfigurationError(
                f"Exactly one binder may be active, found: {', '.join(sorted(self._active))}"
            )
        return next(iter(self._active))

    def active_binder(self) -> Binder:
        """Return the single active binder (see ``active_binder_id``)."""
        return self._binders[self.active_binder_id]

    @property
    def binder_ids(self) -> List[str]:
        return list(self._binders)
