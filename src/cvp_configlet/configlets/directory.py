"""Configlet directory: lookups by name or device, plus create/delete."""
import logging

from ..envelope import check_response, decode_json, decode_record
from ..errors import CvpError, NotFound, RemoteRejected, TransportFailure
from .models import Configlet

logger = logging.getLogger(__name__)

# errorCode returned by getConfigletByName for an unknown name
NOT_FOUND_CODES = {"132801"}


class ConfigletDirectory:
    """Resolves configlet names and keys against the remote system.

    Nothing is cached: every call reads fresh state.
    """

    def __init__(self, transport, page_size: int = 15):
        self.transport = transport
        self.page_size = page_size

    async def get_configlet_by_name(self, name: str) -> Configlet:
        """Fetch a configlet by its name.

        Raises:
            NotFound: if the remote system has no configlet with that name
        """
        raw = await self.transport.get("/configlet/getConfigletByName.do", params={"name": name})
        data = decode_json(raw, f"configlet {name}")
        if not isinstance(data, dict):
            raise TransportFailure(f"Unexpected response for configlet {name}")

        error_code = str(data.get("errorCode") or "")
        if error_code in NOT_FOUND_CODES:
            raise NotFound("configlet", name)
        if error_code:
            raise RemoteRejected(error_code, data.get("errorMessage") or "")

        configlet = Configlet.from_dict(data)
        if not configlet.key:
            raise NotFound("configlet", name)
        return configlet

    async def get_configlets_by_name(self, names: list[str]) -> list[Configlet]:
        """Resolve names in order, stopping at the first failure."""
        result = []
        for name in names:
            result.append(await self.get_configlet_by_name(name))
        return result

    async def get_configlets_by_device(self, device_key: str) -> list[Configlet]:
        """Get the configlets currently assigned to a device.

        Reads page_size configlets per request until the reported total is
        reached. An empty list means the device has no configlets.

        Raises:
            CvpError: if the remote system stops short of its reported total
        """
        configlets: list[Configlet] = []
        while True:
            raw = await self.transport.get(
                "/provisioning/getConfigletsByNetElementId.do",
                params={
                    "netElementId": device_key,
                    "queryParam": "",
                    "startIndex": len(configlets),
                    "endIndex": len(configlets) + self.page_size,
                },
            )
            data = decode_record(raw, f"configlets of {device_key}")
            page = [Configlet.from_dict(item) for item in data.get("configletList") or []]
            configlets.extend(page)

            total = data.get("total")
            if total is None:
                if len(page) < self.page_size:
                    break
            elif len(configlets) >= int(total):
                break
            if not page:
                raise CvpError(
                    f"Device {device_key} reports {total} configlets "
                    f"but only {len(configlets)} were returned"
                )

        logger.debug(f"Device {device_key} has {len(configlets)} configlets")
        return configlets

    async def add_configlet(self, name: str, config: str) -> None:
        """Create a configlet."""
        logger.info(f"Adding configlet {name}")
        raw = await self.transport.call({"name": name, "config": config}, "/configlet/addConfiglet.do")
        check_response(raw)

    async def delete_configlet(self, name: str) -> None:
        """Delete a configlet by name."""
        configlet = await self.get_configlet_by_name(name)
        # The delete schema does not allow the config property
        body = [configlet.without_config().to_dict()]
        logger.info(f"Deleting configlet {name} ({configlet.key})")
        raw = await self.transport.call(body, "/configlet/deleteConfiglet.do")
        check_response(raw)

    async def update_reconcile_configlet(self, device_key: str, name: str, config: str) -> None:
        """Create or update the reconcile configlet of a device."""
        body = {"name": name, "config": config, "reconciled": False}
        logger.info(f"Updating reconcile configlet {name} for {device_key}")
        raw = await self.transport.call(
            body, f"/provisioning/updateReconcileConfiglet.do?netElementId={device_key}"
        )
        check_response(raw)
