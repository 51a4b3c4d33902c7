"""Configlet assignment workflows.

Composes the directory, the reconciler and the staged commit into the
operations exposed to operators: apply, remove, validate and config sync.
Each call re-reads the device's current assignment; concurrent calls
against the same device can overwrite each other's staged action.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..config.settings import CvpSettings
from ..envelope import check_response
from ..errors import CvpError, PartialCommit
from ..inventory import InventoryClient
from ..utils.audit_log import ChangeTracker
from ..utils.logging_config import timed
from .commit import CommitResult, StagedCommit, build_assign_action, build_remove_action
from .directory import ConfigletDirectory
from .models import Configlet
from .reconciler import duplicate_keys, keys_of, merge, names_of, plan_removal

logger = logging.getLogger(__name__)

VALIDATE_PATH = "/provisioning/v2/validateAndCompareConfiglets.do"
VALIDATE_CONFIG_PATH = "/configlet/validateConfig.do"


@dataclass
class SyncResult:
    """Outcome of syncing a device's running config into its reconcile configlet."""
    configlet_name: str
    commit: CommitResult
    reconcile_error: Optional[CvpError] = None

    def to_dict(self) -> dict:
        result = {"configlet": self.configlet_name, **self.commit.to_dict()}
        if self.reconcile_error:
            result["reconcile_error"] = str(self.reconcile_error)
        return result


class ConfigletManager:
    """Apply, remove and reconcile configlets on devices.

    Usage:
        async with CvpClient(settings) as client:
            manager = ConfigletManager.from_settings(client, settings)
            result = await manager.apply_configlets_to_device(
                "10.0.0.1", "leaf1.lab", "00:1c:73:00:00:01", ["ntp"], save=False
            )
    """

    def __init__(
        self,
        transport,
        page_size: int = 15,
        reconcile_prefix: str = "RECONCILE_",
        abort_sync_on_reconcile_error: bool = False,
        tracker: Optional[ChangeTracker] = None,
    ):
        self.transport = transport
        self.directory = ConfigletDirectory(transport, page_size=page_size)
        self.inventory = InventoryClient(transport)
        self.committer = StagedCommit(transport)
        self.reconcile_prefix = reconcile_prefix
        self.abort_sync_on_reconcile_error = abort_sync_on_reconcile_error
        self.tracker = tracker or ChangeTracker()

    @classmethod
    def from_settings(
        cls,
        transport,
        settings: CvpSettings,
        tracker: Optional[ChangeTracker] = None,
    ) -> "ConfigletManager":
        return cls(
            transport,
            page_size=settings.page_size,
            reconcile_prefix=settings.reconcile_prefix,
            abort_sync_on_reconcile_error=settings.abort_sync_on_reconcile_error,
            tracker=tracker,
        )

    def _audit(
        self,
        operation: str,
        device_key: str,
        parameters: dict,
        result: Optional[CommitResult] = None,
        error: Optional[Exception] = None,
    ) -> None:
        if isinstance(error, PartialCommit):
            result = error.result
        self.tracker.log_change(
            device_id=device_key,
            operation=operation,
            parameters=parameters,
            success=error is None,
            state=result.state.value if result else None,
            configlets=names_of(result.final) if result else None,
            excluded=names_of(result.excluded) if result else None,
            error=str(error) if error else None,
        )

    # === Assignment ===

    @timed("apply_configlets")
    async def apply_configlets_to_device(
        self,
        device_ip: str,
        device_name: str,
        device_key: str,
        configlet_names: list[str],
        save: bool,
    ) -> CommitResult:
        """Add configlets to a device, keeping the ones already assigned.

        Args:
            device_ip: Management IP of the device
            device_name: Device FQDN
            device_key: Device key (system MAC address)
            configlet_names: Names of the configlets to assign
            save: Commit the staged action; otherwise leave it staged

        Returns:
            CommitResult telling whether the action was staged or committed
        """
        params = {"configlets": list(configlet_names), "save": save}
        try:
            current = await self.directory.get_configlets_by_device(device_key)
            requested = await self.directory.get_configlets_by_name(configlet_names)
            final = merge(current, requested)

            action = build_assign_action(device_ip, device_name, device_key, final)
            logger.info(
                f"Applying configlets to {device_name}: "
                f"{names_of(current)} -> {names_of(final)}"
            )
            result = await self.committer.submit(action, save)
        except CvpError as e:
            logger.error(f"Applying configlets to {device_name} failed: {e}")
            self._audit("apply_configlets", device_key, params, error=e)
            raise

        self._audit("apply_configlets", device_key, params, result=result)
        return result

    @timed("remove_configlets")
    async def remove_configlets_from_device(
        self,
        device_ip: str,
        device_name: str,
        device_key: str,
        configlet_names: list[str],
        save: bool,
    ) -> CommitResult:
        """Remove configlets from a device.

        The staged action lists both the configlets that stay and the ones
        dropped. Requested names not assigned to the device are ignored.
        """
        params = {"configlets": list(configlet_names), "save": save}
        try:
            current = await self.directory.get_configlets_by_device(device_key)
            removal = await self.directory.get_configlets_by_name(configlet_names)
            plan = plan_removal(current, removal)
            excluded_keys = {c.match_key for c in plan.excluded}
            missing = [c.name for c in removal if c.match_key not in excluded_keys]
            if missing:
                logger.info(f"Not assigned to {device_name}, ignoring: {missing}")

            action = build_remove_action(device_ip, device_name, device_key, plan)
            logger.info(
                f"Removing configlets from {device_name}: "
                f"keep {names_of(plan.remaining)}, drop {names_of(plan.excluded)}"
            )
            result = await self.committer.submit(action, save)
        except CvpError as e:
            logger.error(f"Removing configlets from {device_name} failed: {e}")
            self._audit("remove_configlets", device_key, params, error=e)
            raise

        self._audit("remove_configlets", device_key, params, result=result)
        return result

    # === Validation ===

    async def _validate(self, device_key: str, configlets: list[Configlet]) -> Any:
        body = {
            "netElementId": device_key,
            "configIdList": keys_of(configlets),
            "pageType": "validate",
        }
        raw = await self.transport.call(body, VALIDATE_PATH)
        return check_response(raw).data

    @timed("validate_reconcile_all")
    async def validate_and_reconcile_all(self, device_key: str) -> Any:
        """Validate every configlet assigned to a device against its running config.

        Returns the remote validation report.
        """
        configlets = await self.directory.get_configlets_by_device(device_key)
        logger.info(f"Validating {len(configlets)} configlets on {device_key}: {names_of(configlets)}")
        dupes = duplicate_keys(configlets)
        if dupes:
            logger.warning(f"Device {device_key} has duplicate configlet assignments: {dupes}")
        return await self._validate(device_key, configlets)

    async def validate_configlet(self, device_key: str, name: str) -> Any:
        """Validate a single configlet against a device."""
        configlet = await self.directory.get_configlet_by_name(name)
        return await self._validate(device_key, [configlet])

    async def validate_config(self, device_key: str, config: str) -> Any:
        """Validate raw configuration text against a device."""
        body = {"data": {"netElementId": device_key, "config": config}}
        raw = await self.transport.call(body, VALIDATE_CONFIG_PATH)
        return check_response(raw).data

    # === Reconcile ===

    def reconcile_configlet_name(self, fqdn: str) -> str:
        return f"{self.reconcile_prefix}{fqdn}"

    @timed("config_sync")
    async def sync_running_config(self, hostname: str) -> SyncResult:
        """Capture a device's running config as its reconcile configlet and apply it.

        A failed reconcile-configlet update is reported on the result and the
        apply still runs, unless abort_sync_on_reconcile_error is set.
        """
        device = await self.inventory.get_device(hostname)
        config = await self.inventory.get_inventory_config(device.key)
        logger.info(f"Got running config from device {device.key} ({len(config)} chars)")

        name = self.reconcile_configlet_name(device.fqdn)
        reconcile_error = None
        try:
            await self.directory.update_reconcile_configlet(device.key, name, config)
        except CvpError as e:
            if self.abort_sync_on_reconcile_error:
                logger.error(f"Error creating reconcile configlet {name}: {e}")
                self._audit("config_sync", device.key, {"hostname": hostname}, error=e)
                raise
            logger.warning(f"Error creating reconcile configlet {name}, applying anyway: {e}")
            reconcile_error = e

        # Assignments target the system MAC
        commit = await self.apply_configlets_to_device(
            device.ip_address, device.fqdn, device.system_mac_address or device.key, [name], save=True
        )
        return SyncResult(configlet_name=name, commit=commit, reconcile_error=reconcile_error)
