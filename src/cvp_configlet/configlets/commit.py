"""Two-phase staged commit of configlet assignments.

An assignment is first staged as a temporary provisioning action. When
``save`` is set the staged topology is then committed so the change takes
effect. Nothing is rolled back: if the commit fails the action stays
staged on the remote system and PartialCommit is raised.
"""
import logging
from dataclasses import dataclass
from enum import Enum

from ..errors import CvpError, PartialCommit
from ..envelope import check_response
from .models import AssignmentAction, Configlet
from .reconciler import RemovalPlan, names_of

logger = logging.getLogger(__name__)

STAGE_PATH = "/provisioning/addTempAction.do?format=topology&queryParam=&nodeId=root"
COMMIT_PATH = "/provisioning/v2/saveTopology.do"


class CommitState(str, Enum):
    """How far an assignment got."""
    STAGED = "staged"
    COMMITTED = "committed"


@dataclass
class CommitResult:
    """Outcome of a staged (and possibly committed) assignment."""
    action: AssignmentAction
    state: CommitState = CommitState.STAGED

    @property
    def committed(self) -> bool:
        return self.state == CommitState.COMMITTED

    @property
    def final(self) -> list[Configlet]:
        return self.action.configlets

    @property
    def excluded(self) -> list[Configlet]:
        return self.action.excluded

    def to_dict(self) -> dict:
        return {
            "device": self.action.to_name,
            "state": self.state.value,
            "configlets": names_of(self.final),
            "excluded": names_of(self.excluded),
        }


def build_assign_action(
    device_ip: str,
    device_name: str,
    device_key: str,
    final: list[Configlet],
) -> AssignmentAction:
    """Action associating the merged configlet set with a device."""
    return AssignmentAction(
        info=f"Configlet Assign to device: {device_name}",
        info_preview=f"<b>Configlet assign</b> to Device {device_name}",
        to_id=device_key,
        to_name=device_name,
        node_ip_address=device_ip,
        configlets=list(final),
    )


def build_remove_action(
    device_ip: str,
    device_name: str,
    device_key: str,
    plan: RemovalPlan,
) -> AssignmentAction:
    """Action keeping the remaining configlets and dropping the excluded ones."""
    return AssignmentAction(
        info=f"Configlet Remove from device: {device_name}",
        info_preview=f"<b>Configlet remove</b> from Device {device_name}",
        to_id=device_key,
        to_name=device_name,
        node_ip_address=device_ip,
        configlets=list(plan.remaining),
        excluded=list(plan.excluded),
    )


class StagedCommit:
    """Submits assignment actions to the staging and commit endpoints."""

    def __init__(self, transport):
        self.transport = transport

    async def _post_action(self, action: AssignmentAction, path: str) -> None:
        raw = await self.transport.call({"data": [action.to_dict()]}, path)
        check_response(raw)

    async def stage(self, action: AssignmentAction) -> None:
        logger.info(f"Staging action for {action.to_name}: {names_of(action.configlets)}")
        await self._post_action(action, STAGE_PATH)

    async def commit(self, action: AssignmentAction) -> None:
        logger.info(f"Committing staged topology for {action.to_name}")
        await self._post_action(action, COMMIT_PATH)

    async def submit(self, action: AssignmentAction, save: bool) -> CommitResult:
        """Stage an action and commit it when ``save`` is true.

        Raises:
            CvpError: if staging fails; nothing was committed
            PartialCommit: if staging succeeded and the commit failed
        """
        await self.stage(action)
        result = CommitResult(action=action)

        if not save:
            logger.info(f"Action for {action.to_name} left staged for review")
            return result

        try:
            await self.commit(action)
        except CvpError as e:
            logger.error(f"Commit failed for {action.to_name}, action remains staged: {e}")
            raise PartialCommit(result, e) from e

        result.state = CommitState.COMMITTED
        return result
