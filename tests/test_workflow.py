"""Tests for the apply, remove, validate and sync workflows."""
import pytest

from conftest import (
    BY_DEVICE_PATH,
    BY_NAME_PATH,
    COMMIT_PATH,
    STAGE_PATH,
    VALIDATE_PATH,
    configlet_record,
    serve_configlets,
)
from cvp_configlet.configlets import CommitState, ConfigletManager
from cvp_configlet.config.settings import CvpSettings
from cvp_configlet.errors import NotFound, PartialCommit, RemoteRejected, TransportFailure
from cvp_configlet.utils.audit_log import ChangeTracker

DEVICE = ("10.0.0.1", "leaf1.lab", "aa:bb")
A = configlet_record("A", "1")
B = configlet_record("B", "2")
C = configlet_record("C", "3")
DIRECTORY = {"A": A, "B": B, "C": C}

RECONCILE_PATH = "/provisioning/updateReconcileConfiglet.do?netElementId=aa:bb"


def staged_action(fake):
    return fake.calls_to(STAGE_PATH)[0]["data"][0]


class RecordingTracker(ChangeTracker):
    """Keeps audit records in memory."""

    def __init__(self):
        super().__init__(user="pytest")
        self.records = []

    def log_change(self, **kwargs):
        record = super().log_change(**kwargs)
        self.records.append(record)
        return record


class TestApplyConfiglets:
    """Tests for applying configlets to a device."""

    @pytest.mark.asyncio
    async def test_apply_appends_new(self, fake, manager):
        """Applying C to [A, B] stages [A, B, C]."""
        serve_configlets(fake, [A, B], DIRECTORY)

        result = await manager.apply_configlets_to_device(*DEVICE, ["C"], True)

        action = staged_action(fake)
        assert action["configletList"] == ["1", "2", "3"]
        assert action["configletNamesList"] == ["A", "B", "C"]
        assert action["ignoreConfigletList"] == []
        assert action["action"] == "associate"
        assert action["toIdType"] == "netelement"
        assert action["toId"] == "aa:bb"
        assert result.state == CommitState.COMMITTED

    @pytest.mark.asyncio
    async def test_apply_idempotent(self, fake, manager):
        """Applying an assigned configlet keeps the set unchanged."""
        serve_configlets(fake, [A, B], DIRECTORY)

        await manager.apply_configlets_to_device(*DEVICE, ["A"], False)

        assert staged_action(fake)["configletList"] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_apply_matches_across_fetch_paths(self, fake, manager):
        """Device configlets with config text match name lookups without it."""
        with_config = configlet_record("A", "1", "hostname leaf1")
        serve_configlets(fake, [with_config], DIRECTORY)

        await manager.apply_configlets_to_device(*DEVICE, ["A", "B"], False)

        assert staged_action(fake)["configletList"] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_no_save_never_commits(self, fake, manager):
        """save=False stages once and never calls commit."""
        serve_configlets(fake, [A], DIRECTORY)

        result = await manager.apply_configlets_to_device(*DEVICE, ["B"], False)

        assert result.state == CommitState.STAGED
        assert len(fake.calls_to(STAGE_PATH)) == 1
        assert len(fake.calls_to(COMMIT_PATH)) == 0

    @pytest.mark.asyncio
    async def test_unknown_name_aborts_before_staging(self, fake, manager):
        """A lookup failure makes no staging call."""
        serve_configlets(fake, [A], DIRECTORY)

        with pytest.raises(NotFound):
            await manager.apply_configlets_to_device(*DEVICE, ["missing"], True)

        assert fake.calls_to(STAGE_PATH) == []

    @pytest.mark.asyncio
    async def test_device_lookup_failure_aborts(self, fake, manager):
        """Failing to read the current set stops before name lookups."""
        fake.on_get(BY_DEVICE_PATH, TransportFailure("connection refused"))

        with pytest.raises(TransportFailure):
            await manager.apply_configlets_to_device(*DEVICE, ["A"], True)

        assert fake.calls_to(BY_NAME_PATH) == []

    @pytest.mark.asyncio
    async def test_stage_rejected(self, fake, manager):
        """Remote rejection of the stage surfaces code and message."""
        serve_configlets(fake, [A], DIRECTORY)
        fake.on_call(STAGE_PATH, {"errorCode": "INVALID", "errorMessage": "bad key"})

        with pytest.raises(RemoteRejected) as exc:
            await manager.apply_configlets_to_device(*DEVICE, ["B"], True)

        assert exc.value.error_code == "INVALID"
        assert exc.value.error_message == "bad key"
        assert fake.calls_to(COMMIT_PATH) == []

    @pytest.mark.asyncio
    async def test_commit_failure_reports_partial(self, fake, manager):
        """A commit failure raises PartialCommit with the staged result."""
        serve_configlets(fake, [A], DIRECTORY)
        fake.on_call(COMMIT_PATH, {"errorCode": "500", "errorMessage": "save failed"})

        with pytest.raises(PartialCommit) as exc:
            await manager.apply_configlets_to_device(*DEVICE, ["B"], True)

        assert [c.name for c in exc.value.result.final] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_fresh_read_each_call(self, fake, manager):
        """Every apply re-reads the device's current configlets."""
        serve_configlets(fake, [A], DIRECTORY)

        await manager.apply_configlets_to_device(*DEVICE, ["B"], False)
        await manager.apply_configlets_to_device(*DEVICE, ["C"], False)

        assert len(fake.calls_to(BY_DEVICE_PATH)) == 2

    @pytest.mark.asyncio
    async def test_keeps_configlets_beyond_first_page(self, fake, manager):
        """Applying to a device with many configlets keeps all of them."""
        assigned = [configlet_record(f"cfg{i}", f"k{i}") for i in range(20)]
        serve_configlets(fake, assigned, {**DIRECTORY, "new": configlet_record("new", "k-new")})

        result = await manager.apply_configlets_to_device(*DEVICE, ["new"], True)

        assert result.state == CommitState.COMMITTED
        assert staged_action(fake)["configletList"] == [f"k{i}" for i in range(20)] + ["k-new"]


class TestRemoveConfiglets:
    """Tests for removing configlets from a device."""

    @pytest.mark.asyncio
    async def test_remove(self, fake, manager):
        """Removing A from [A, B] keeps B and ignores A."""
        serve_configlets(fake, [A, B], DIRECTORY)

        result = await manager.remove_configlets_from_device(*DEVICE, ["A"], True)

        action = staged_action(fake)
        assert action["configletList"] == ["2"]
        assert action["configletNamesList"] == ["B"]
        assert action["ignoreConfigletList"] == ["1"]
        assert action["ignoreConfigletNamesList"] == ["A"]
        assert action["info"] == "Configlet Remove from device: leaf1.lab"
        assert result.committed

    @pytest.mark.asyncio
    async def test_remove_last_configlet(self, fake, manager):
        """Removing every configlet sends an empty association list."""
        serve_configlets(fake, [A], DIRECTORY)

        await manager.remove_configlets_from_device(*DEVICE, ["A"], False)

        action = staged_action(fake)
        assert action["configletList"] == []
        assert action["ignoreConfigletList"] == ["1"]

    @pytest.mark.asyncio
    async def test_remove_unassigned(self, fake, manager):
        """Removing a configlet the device lacks changes nothing."""
        serve_configlets(fake, [A, B], DIRECTORY)

        result = await manager.remove_configlets_from_device(*DEVICE, ["C"], False)

        action = staged_action(fake)
        assert action["configletList"] == ["1", "2"]
        assert action["ignoreConfigletList"] == []
        assert result.excluded == []

    @pytest.mark.asyncio
    async def test_remove_unknown_name(self, fake, manager):
        """An unknown name aborts the removal."""
        serve_configlets(fake, [A], DIRECTORY)

        with pytest.raises(NotFound):
            await manager.remove_configlets_from_device(*DEVICE, ["missing"], True)

        assert fake.calls_to(STAGE_PATH) == []


class TestAudit:
    """Tests for audit records of assignment changes."""

    @pytest.mark.asyncio
    async def test_success_recorded(self, fake):
        """A committed apply writes one successful record."""
        serve_configlets(fake, [A], DIRECTORY)
        tracker = RecordingTracker()
        manager = ConfigletManager(fake, tracker=tracker)

        await manager.apply_configlets_to_device(*DEVICE, ["B"], True)

        record = tracker.records[0]
        assert record.success
        assert record.operation == "apply_configlets"
        assert record.state == "committed"
        assert record.configlets == ["A", "B"]
        assert record.user == "pytest"

    @pytest.mark.asyncio
    async def test_partial_commit_recorded_as_staged(self, fake):
        """A failed commit is recorded as a staged failure."""
        serve_configlets(fake, [A, B], DIRECTORY)
        fake.on_call(COMMIT_PATH, TransportFailure("timed out"))
        tracker = RecordingTracker()
        manager = ConfigletManager(fake, tracker=tracker)

        with pytest.raises(PartialCommit):
            await manager.remove_configlets_from_device(*DEVICE, ["B"], True)

        record = tracker.records[0]
        assert not record.success
        assert record.state == "staged"
        assert record.excluded == ["B"]


class TestValidateAndReconcileAll:
    """Tests for validating a device's full configlet set."""

    @pytest.mark.asyncio
    async def test_submits_all_keys(self, fake, manager):
        """All assigned keys are submitted in order."""
        serve_configlets(fake, [B, A], DIRECTORY)
        fake.on_call(VALIDATE_PATH, {"data": {"mismatch": 0}})

        report = await manager.validate_and_reconcile_all("aa:bb")

        assert report == {"mismatch": 0}
        body = fake.calls_to(VALIDATE_PATH)[0]
        assert body["netElementId"] == "aa:bb"
        assert body["configIdList"] == ["2", "1"]

    @pytest.mark.asyncio
    async def test_duplicates_submitted_as_is(self, fake, manager):
        """Duplicate assignments are not de-duplicated."""
        serve_configlets(fake, [A, A], DIRECTORY)
        fake.on_call(VALIDATE_PATH, {"data": {}})

        await manager.validate_and_reconcile_all("aa:bb")

        assert fake.calls_to(VALIDATE_PATH)[0]["configIdList"] == ["1", "1"]

    @pytest.mark.asyncio
    async def test_remote_error(self, fake, manager):
        """A remote error surfaces as one RemoteRejected."""
        serve_configlets(fake, [A], DIRECTORY)
        fake.on_call(VALIDATE_PATH, {"errorCode": "INVALID", "errorMessage": "bad key"})

        with pytest.raises(RemoteRejected) as exc:
            await manager.validate_and_reconcile_all("aa:bb")
        assert exc.value.error_message == "bad key"

    @pytest.mark.asyncio
    async def test_device_without_configlets(self, fake, manager):
        """A device without configlets submits an empty list."""
        serve_configlets(fake, [], DIRECTORY)
        fake.on_call(VALIDATE_PATH, {"data": {}})

        await manager.validate_and_reconcile_all("aa:bb")

        assert fake.calls_to(VALIDATE_PATH)[0]["configIdList"] == []


class TestValidateSingle:
    """Tests for single configlet and raw config validation."""

    @pytest.mark.asyncio
    async def test_validate_configlet(self, fake, manager):
        """One configlet's key is submitted."""
        serve_configlets(fake, [], DIRECTORY)
        fake.on_call(VALIDATE_PATH, {"data": {"warnings": []}})

        await manager.validate_configlet("aa:bb", "C")

        assert fake.calls_to(VALIDATE_PATH)[0]["configIdList"] == ["3"]

    @pytest.mark.asyncio
    async def test_validate_config(self, fake, manager):
        """Raw config text is wrapped in a data object."""
        fake.on_call("/configlet/validateConfig.do", {"data": {"errors": []}})

        report = await manager.validate_config("aa:bb", "hostname leaf1")

        assert report == {"errors": []}
        assert fake.calls_to("/configlet/validateConfig.do") == [
            {"data": {"netElementId": "aa:bb", "config": "hostname leaf1"}}
        ]


class TestSyncRunningConfig:
    """Tests for syncing running config into the reconcile configlet."""

    def _serve_device(self, fake):
        reconcile = configlet_record("RECONCILE_leaf1.lab", "9")
        serve_configlets(fake, [A], {**DIRECTORY, "RECONCILE_leaf1.lab": reconcile})
        fake.on_get("/inventory/getInventory.do", {
            "total": 1,
            "netElementList": [{
                "fqdn": "leaf1.lab",
                "ipAddress": "10.0.0.1",
                "systemMacAddress": "aa:bb",
                "key": "aa:bb",
            }],
        })
        fake.on_get("/inventory/getInventoryConfiguration.do", {"output": "hostname leaf1"})
        fake.on_call(RECONCILE_PATH, {"data": "success"})

    @pytest.mark.asyncio
    async def test_sync(self, fake, manager):
        """Running config is stored and the reconcile configlet applied and saved."""
        self._serve_device(fake)

        result = await manager.sync_running_config("leaf1")

        assert result.configlet_name == "RECONCILE_leaf1.lab"
        assert result.reconcile_error is None
        assert fake.calls_to(RECONCILE_PATH) == [
            {"name": "RECONCILE_leaf1.lab", "config": "hostname leaf1", "reconciled": False}
        ]
        assert staged_action(fake)["configletNamesList"] == ["A", "RECONCILE_leaf1.lab"]
        assert len(fake.calls_to(COMMIT_PATH)) == 1
        assert result.commit.committed

    @pytest.mark.asyncio
    async def test_assignment_targets_system_mac(self, fake, manager):
        """The apply step targets the system MAC even when the key differs."""
        self._serve_device(fake)
        fake.on_get("/inventory/getInventory.do", {
            "total": 1,
            "netElementList": [{
                "fqdn": "leaf1.lab",
                "ipAddress": "10.0.0.1",
                "systemMacAddress": "aa:bb",
                "key": "inv-7",
            }],
        })
        fake.on_call("/provisioning/updateReconcileConfiglet.do?netElementId=inv-7", {"data": "success"})

        await manager.sync_running_config("leaf1")

        assert fake.calls_to("/inventory/getInventoryConfiguration.do") == [{"netElementId": "inv-7"}]
        assert fake.calls_to(BY_DEVICE_PATH)[0]["netElementId"] == "aa:bb"
        assert staged_action(fake)["toId"] == "aa:bb"

    @pytest.mark.asyncio
    async def test_reconcile_failure_still_applies(self, fake, manager):
        """By default a failed update is reported and the apply still runs."""
        self._serve_device(fake)
        fake.on_call(RECONCILE_PATH, {"errorCode": "132518", "errorMessage": "invalid config"})

        result = await manager.sync_running_config("leaf1.lab")

        assert isinstance(result.reconcile_error, RemoteRejected)
        assert len(fake.calls_to(STAGE_PATH)) == 1
        assert "reconcile_error" in result.to_dict()

    @pytest.mark.asyncio
    async def test_reconcile_failure_aborts_when_configured(self, fake):
        """abort_sync_on_reconcile_error stops before the apply."""
        self._serve_device(fake)
        fake.on_call(RECONCILE_PATH, {"errorCode": "132518", "errorMessage": "invalid config"})
        settings = CvpSettings(host="cvp", username="admin", abort_sync_on_reconcile_error=True)
        manager = ConfigletManager.from_settings(fake, settings, tracker=RecordingTracker())

        with pytest.raises(RemoteRejected):
            await manager.sync_running_config("leaf1")

        assert fake.calls_to(STAGE_PATH) == []

    @pytest.mark.asyncio
    async def test_unknown_device(self, fake, manager):
        """An unknown hostname raises NotFound."""
        fake.on_get("/inventory/getInventory.do", {"total": 0, "netElementList": []})

        with pytest.raises(NotFound):
            await manager.sync_running_config("spine9")
