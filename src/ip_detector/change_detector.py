"""
Change detection for resolved addresses.

Compares freshly resolved addresses against the last recorded values and
produces a per-family verdict. The comparison is pure: it reads the prior
state and never modifies it.
"""

from dataclasses import dataclass

from .enums import AddressFamily
from .models import PersistedState


@dataclass(frozen=True)
class FamilyStatus:
    """Comparison outcome for one address family."""

    current: str
    previous: str
    changed: bool

    @property
    def is_first_record(self) -> bool:
        """True if this change records an address for the first time."""
        return self.changed and not self.previous


@dataclass(frozen=True)
class ChangeVerdict:
    """Comparison outcome for both address families in one cycle."""

    ipv4: FamilyStatus
    ipv6: FamilyStatus

    @property
    def any_changed(self) -> bool:
        return self.ipv4.changed or self.ipv6.changed

    @property
    def is_initialization(self) -> bool:
        """True if any changed family had no previously recorded value."""
        return self.ipv4.is_first_record or self.ipv6.is_first_record

    def for_family(self, family: AddressFamily) -> FamilyStatus:
        return self.ipv4 if family == AddressFamily.IPV4 else self.ipv6

    def changed_families(self) -> list[AddressFamily]:
        return [
            family
            for family in (AddressFamily.IPV4, AddressFamily.IPV6)
            if self.for_family(family).changed
        ]


class ChangeDetector:
    """
    Decides which address families changed since the last recorded cycle.

    A family is changed only when it resolved to a non-empty address that
    differs from the recorded one. An unresolved family is never a change,
    so losing connectivity does not overwrite the last known address.
    """

    @staticmethod
    def compare(resolved: str, previous: str) -> FamilyStatus:
        return FamilyStatus(
            current=resolved,
            previous=previous,
            changed=bool(resolved) and resolved != previous,
        )

    def evaluate(
        self,
        resolved_ipv4: str,
        resolved_ipv6: str,
        prior_state: PersistedState,
    ) -> ChangeVerdict:
        """
        Build the verdict for one cycle.

        Args:
            resolved_ipv4: Resolved IPv4 address, or "" if it failed
            resolved_ipv6: Resolved IPv6 address, or "" if unavailable
            prior_state: State snapshot loaded at the start of the cycle

        Returns:
            ChangeVerdict for both families
        """
        return ChangeVerdict(
            ipv4=self.compare(resolved_ipv4 or "", prior_state.last_known_ipv4),
            ipv6=self.compare(resolved_ipv6 or "", prior_state.last_known_ipv6),
        )
