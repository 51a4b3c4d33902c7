"""Device inventory lookups."""
import logging
from dataclasses import dataclass

from .envelope import check_response, decode_record
from .errors import NotFound

logger = logging.getLogger(__name__)


@dataclass
class Device:
    """A managed device as reported by the inventory."""
    key: str
    fqdn: str
    ip_address: str
    system_mac_address: str = ""

    @property
    def hostname(self) -> str:
        return self.fqdn.split(".", 1)[0]

    @classmethod
    def from_dict(cls, data: dict) -> "Device":
        mac = data.get("systemMacAddress", "")
        return cls(
            key=data.get("key") or mac,
            fqdn=data.get("fqdn", ""),
            ip_address=data.get("ipAddress", ""),
            system_mac_address=mac,
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "fqdn": self.fqdn,
            "ip_address": self.ip_address,
            "system_mac_address": self.system_mac_address,
        }


class InventoryClient:
    """Looks up devices and their running configuration.

    ``transport`` is anything with ``call(payload, path)`` and
    ``get(path, params=None)`` coroutines returning raw bytes.
    """

    def __init__(self, transport):
        self.transport = transport

    async def get_device(self, hostname: str) -> Device:
        """Find a device by FQDN, short hostname or IP address.

        Raises:
            NotFound: if no inventory entry matches
        """
        raw = await self.transport.get(
            "/inventory/getInventory.do",
            params={"queryparam": hostname, "startIndex": 0, "endIndex": 0},
        )
        data = decode_record(raw, "inventory")

        for element in data.get("netElementList") or []:
            device = Device.from_dict(element)
            if hostname in (device.fqdn, device.hostname, device.ip_address):
                logger.debug(f"Resolved {hostname} to device {device.key}")
                return device

        raise NotFound("device", hostname)

    async def get_inventory_config(self, device_key: str) -> str:
        """Get the running configuration of a device."""
        raw = await self.transport.get(
            "/inventory/getInventoryConfiguration.do",
            params={"netElementId": device_key},
        )
        data = decode_record(raw, f"running config of {device_key}")
        return data.get("output", "")

    async def add_device(
        self,
        ip_address: str,
        container_name: str = "Tenant",
        container_id: str = "root",
    ) -> None:
        """Add a device to the inventory under an existing container."""
        payload = {
            "data": [
                {
                    "containerName": container_name,
                    "containerId": container_id,
                    "containerType": "Existing",
                    "ipAddress": ip_address,
                    "containerList": [],
                }
            ]
        }
        logger.info(f"Adding device {ip_address} to container {container_name}")
        raw = await self.transport.call(
            payload, "/inventory/add/addToInventory.do?startIndex=0&endIndex=15"
        )
        check_response(raw)
