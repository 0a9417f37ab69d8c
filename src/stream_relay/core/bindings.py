"""
Channel binding table.

Maps (channel, role) pairs to physical destinations for the active binder.
The table only enforces per-(channel, role) uniqueness: a producer and a
consumer communicate when, and only when, their destination strings are
equal. Two destinations that differ by a typo simply never meet.
"""
import logging
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationError, DuplicateBindingError, UnboundChannelError
from ..models.messages import Binding, Role

logger = logging.getLogger(__name__)


class BindingTable:
    """
    Startup-built, read-only-afterwards table of channel bindings.

    Bindings naming another binder than the active one are accepted but not
    realized, so one configuration document can describe several binders.
    """

    def __init__(self, active_binder_id: str):
        self._active_binder_id = active_binder_id
        self._bindings: Dict[Tuple[str, Role], Binding] = {}
        self._sealed = False

    @property
    def active_binder_id(self) -> str:
        return self._active_binder_id

    @property
    def sealed(self) -> bool:
        return self._sealed

    def bind(
        self,
        channel: str,
        destination: str,
        role: Role,
        group: Optional[str] = None,
        binder_id: Optional[str] = None,
    ) -> Binding:
        """
        Declare a binding.

        Args:
            channel: Logical channel name
            destination: Physical destination name
            role: Producer or consumer
            group: Consumer group (consumer role only)
            binder_id: Binder the binding belongs to (defaults to the active one)

        Returns:
            The binding

        Raises:
            DuplicateBindingError: If (channel, role) is already bound
            ConfigurationError: If the table is sealed or the binding is malformed
        """
        if self._sealed:
            raise ConfigurationError("Binding table is sealed; bindings are fixed after startup")

        role = Role(role)
        if not channel:
            raise ConfigurationError("Channel name must not be empty")
        if not destination:
            raise ConfigurationError(f"Destination for channel '{channel}' must not be empty")
        if group and role is Role.PRODUCER:
            raise ConfigurationError(
                f"Producer binding for channel '{channel}' cannot declare a consumer group"
            )

        binding = Binding(
            channel=channel,
            destination=destination,
            binder_id=binder_id or self._active_binder_id,
            role=role,
            group=group or None,
        )

        if binding.binder_id != self._active_binder_id:
            logger.debug(
                f"Skipping binding {channel} -> {destination} for inactive binder '{binding.binder_id}'"
            )
            return binding

        key = (channel, role)
        if key in self._bindings:
            raise DuplicateBindingError(channel, role.value)

        self._bindings[key] = binding
        logger.info(
            f"Bound {role.value} channel '{channel}' -> '{destination}'"
            + (f" (group: {group})" if group else "")
        )
        return binding

    def lookup(self, channel: str, role: Role) -> Binding:
        """
        Resolve the binding for (channel, role).

        Raises:
            UnboundChannelError: If no binding exists
        """
        role = Role(role)
        try:
            return self._bindings[(channel, role)]
        except KeyError:
            raise UnboundChannelError(channel, role.value) from None

    def for_destination(self, destination: str, role: Optional[Role] = None) -> List[Binding]:
        """All realized bindings on a destination, optionally filtered by role."""
        return [
            b for b in self._bindings.values()
            if b.destination == destination and (role is None or b.role == role)
        ]

    def all(self) -> List[Binding]:
        return list(self._bindings.values())

    def seal(self) -> None:
        """Freeze the table; later ``bind`` calls fail."""
        self._sealed = True
        logger.debug(f"Binding table sealed with {len(self._bindings)} binding(s)")
