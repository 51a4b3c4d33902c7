"""Configlet assignment engine.

Computes the configlet set a device should have after an apply or remove
request and pushes it through a two-phase staged commit:

    from cvp_configlet.configlets import ConfigletManager

    manager = ConfigletManager(client)
    result = await manager.apply_configlets_to_device(
        "10.0.0.1", "leaf1.lab", "00:1c:73:00:00:01", ["ntp"], save=True
    )
    result.state  # CommitState.COMMITTED
"""

from .models import Configlet, AssignmentAction
from .reconciler import (
    RemovalPlan,
    merge,
    filter_out,
    plan_removal,
    names_of,
    keys_of,
)
from .directory import ConfigletDirectory
from .commit import CommitState, CommitResult, StagedCommit
from .workflow import ConfigletManager, SyncResult

__all__ = [
    # Main workflow
    "ConfigletManager",
    "SyncResult",
    # Data model
    "Configlet",
    "AssignmentAction",
    # Reconciler
    "RemovalPlan",
    "merge",
    "filter_out",
    "plan_removal",
    "names_of",
    "keys_of",
    # Components
    "ConfigletDirectory",
    "CommitState",
    "CommitResult",
    "StagedCommit",
]
