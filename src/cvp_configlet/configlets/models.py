"""Data model for configlets and staged assignment actions.

Field names in ``to_dict`` outputs are the remote API's wire names and
must not be changed.
"""
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Configlet:
    """A named configuration fragment.

    Equality compares all three fields. Set operations in the reconciler
    match on ``match_key`` instead, since directory and device lookups do
    not populate ``config`` consistently.
    """
    name: str
    key: str = ""
    config: Optional[str] = None

    @property
    def match_key(self) -> str:
        """Canonical identity: the remote key, or the name when no key is set."""
        return self.key or self.name

    @classmethod
    def from_dict(cls, data: dict) -> "Configlet":
        return cls(
            name=data.get("name", ""),
            key=data.get("key", "") or "",
            config=data.get("config"),
        )

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"name": self.name}
        if self.key:
            result["key"] = self.key
        if self.config is not None:
            result["config"] = self.config
        return result

    def without_config(self) -> "Configlet":
        return Configlet(name=self.name, key=self.key)


@dataclass
class AssignmentAction:
    """A staged intent to set the configlets of one device.

    ``configlets`` is the final set to associate, ``excluded`` the set
    being explicitly dropped. Builder lists are always sent empty.
    """
    info: str
    info_preview: str
    to_id: str
    to_name: str
    node_ip_address: str
    configlets: list[Configlet] = field(default_factory=list)
    excluded: list[Configlet] = field(default_factory=list)
    action: str = "associate"
    node_type: str = "configlet"
    to_id_type: str = "netelement"
    node_id: str = ""
    node_name: str = ""
    from_id: str = ""
    from_name: str = ""

    def to_dict(self) -> dict:
        """Build the wire payload for one action."""
        return {
            "info": self.info,
            "infoPreview": self.info_preview,
            "action": self.action,
            "nodeType": self.node_type,
            "nodeId": self.node_id,
            "toId": self.to_id,
            "toIdType": self.to_id_type,
            "fromId": self.from_id,
            "nodeName": self.node_name,
            "fromName": self.from_name,
            "toName": self.to_name,
            "nodeIpAddress": self.node_ip_address,
            "nodeTargetIpAddress": self.node_ip_address,
            "configletList": [c.key for c in self.configlets],
            "configletNamesList": [c.name for c in self.configlets],
            "ignoreConfigletList": [c.key for c in self.excluded],
            "ignoreConfigletNamesList": [c.name for c in self.excluded],
            "configletBuilderList": [],
            "configletBuilderNamesList": [],
            "ignoreConfigletBuilderList": [],
            "ignoreConfigletBuilderNamesList": [],
        }

