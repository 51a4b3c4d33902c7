"""Set reconciliation for configlet assignments.

Pure functions over ordered configlet lists. Membership is decided by
``Configlet.match_key`` (the remote key, falling back to the name), so a
configlet fetched with its config text matches the same configlet fetched
without it.
"""
from dataclasses import dataclass, field
from typing import Iterable

from .models import Configlet


@dataclass
class RemovalPlan:
    """Outcome of removing configlets from a device's current set."""
    remaining: list[Configlet] = field(default_factory=list)
    excluded: list[Configlet] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        return not self.excluded


def _match_keys(configlets: Iterable[Configlet]) -> set[str]:
    return {c.match_key for c in configlets}


def contains(configlets: Iterable[Configlet], configlet: Configlet) -> bool:
    """Check membership by match key."""
    return configlet.match_key in _match_keys(configlets)


def merge(current: list[Configlet], requested: list[Configlet]) -> list[Configlet]:
    """Append requested configlets not already in current.

    Current items keep their order and come first. Requested items are
    checked against current only, so an apply is idempotent for configlets
    already assigned.
    """
    present = _match_keys(current)
    return list(current) + [c for c in requested if c.match_key not in present]


def filter_out(all_configlets: list[Configlet], to_remove: list[Configlet]) -> list[Configlet]:
    """Return the configlets of all_configlets not in to_remove, order kept."""
    removing = _match_keys(to_remove)
    return [c for c in all_configlets if c.match_key not in removing]


def plan_removal(current: list[Configlet], to_remove: list[Configlet]) -> RemovalPlan:
    """Split current into the configlets that stay and those dropped.

    Every item of current lands in exactly one of the two lists.
    Requested configlets that are not assigned are not reported as excluded.
    """
    removing = _match_keys(to_remove)
    plan = RemovalPlan()
    for configlet in current:
        if configlet.match_key in removing:
            plan.excluded.append(configlet)
        else:
            plan.remaining.append(configlet)
    return plan


def names_of(configlets: Iterable[Configlet]) -> list[str]:
    return [c.name for c in configlets]


def keys_of(configlets: Iterable[Configlet]) -> list[str]:
    return [c.key for c in configlets]


def duplicate_keys(configlets: Iterable[Configlet]) -> list[str]:
    """Match keys that occur more than once, in first-seen order."""
    seen: set[str] = set()
    dupes: list[str] = []
    for c in configlets:
        if c.match_key in seen and c.match_key not in dupes:
            dupes.append(c.match_key)
        seen.add(c.match_key)
    return dupes
