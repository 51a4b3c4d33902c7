"""MCP Server for configlet assignment management.

Tools exposed:
- get_device_configlets: List the configlets assigned to a device
- add_configlet: Create a configlet
- delete_configlet: Delete a configlet
- validate_configlet: Validate one configlet against a device
- validate_config: Validate raw config text against a device
- apply_configlets: Assign configlets to a device (staged, optionally committed)
- remove_configlets: Remove configlets from a device (staged, optionally committed)
- validate_reconcile_all: Validate all configlets assigned to a device
- config_sync: Capture running config into the device's reconcile configlet
- add_device: Add a device to the inventory
- get_audit_log: Show recent assignment changes
"""
import asyncio
import json
import logging
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    TextContent,
    Tool,
    Resource,
)
from pydantic import AnyUrl

from .client import CvpClient
from .config.settings import CvpSettings, load_settings
from .configlets import ConfigletManager, names_of
from .errors import PartialCommit
from .utils.audit_log import setup_audit_logging, get_recent_changes
from .utils.logging_config import setup_logging, timed_section

setup_audit_logging()
setup_logging()
logger = logging.getLogger(__name__)

# Initialized on first tool call
settings: Optional[CvpSettings] = None
client: Optional[CvpClient] = None
manager: Optional[ConfigletManager] = None


def get_manager() -> ConfigletManager:
    """Get or create the configlet manager."""
    global settings, client, manager
    if manager is None:
        settings = load_settings()
        client = CvpClient(settings)
        manager = ConfigletManager.from_settings(client, settings)
    return manager


server = Server("cvp-configlet")


def _device_identity_schema() -> dict:
    return {
        "device_ip": {
            "type": "string",
            "description": "Management IP address of the device"
        },
        "device_name": {
            "type": "string",
            "description": "Device FQDN"
        },
        "device_key": {
            "type": "string",
            "description": "Device key (system MAC address)"
        },
    }


# === TOOLS ===

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="get_device_configlets",
            description="List the configlets currently assigned to a device",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_key": {
                        "type": "string",
                        "description": "Device key (system MAC address)"
                    }
                },
                "required": ["device_key"]
            }
        ),
        Tool(
            name="add_configlet",
            description="Create a configlet with the given configuration text",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Configlet name"},
                    "config": {"type": "string", "description": "Configuration text"}
                },
                "required": ["name", "config"]
            }
        ),
        Tool(
            name="delete_configlet",
            description="Delete a configlet by name",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Configlet name"}
                },
                "required": ["name"]
            }
        ),
        Tool(
            name="validate_configlet",
            description="Validate one configlet against a device's running configuration",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_key": {"type": "string", "description": "Device key"},
                    "name": {"type": "string", "description": "Configlet name"}
                },
                "required": ["device_key", "name"]
            }
        ),
        Tool(
            name="validate_config",
            description="Validate raw configuration text against a device",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_key": {"type": "string", "description": "Device key"},
                    "config": {"type": "string", "description": "Configuration text"}
                },
                "required": ["device_key", "config"]
            }
        ),
        Tool(
            name="apply_configlets",
            description=(
                "Assign configlets to a device. Configlets already assigned are kept. "
                "With save=false the change is only staged for review."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_device_identity_schema(),
                    "configlets": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Names of configlets to assign"
                    },
                    "save": {
                        "type": "boolean",
                        "description": "Commit the staged change (default: false)",
                        "default": False
                    }
                },
                "required": ["device_ip", "device_name", "device_key", "configlets"]
            }
        ),
        Tool(
            name="remove_configlets",
            description=(
                "Remove configlets from a device. "
                "With save=false the change is only staged for review."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_device_identity_schema(),
                    "configlets": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Names of configlets to remove"
                    },
                    "save": {
                        "type": "boolean",
                        "description": "Commit the staged change (default: false)",
                        "default": False
                    }
                },
                "required": ["device_ip", "device_name", "device_key", "configlets"]
            }
        ),
        Tool(
            name="validate_reconcile_all",
            description="Validate all configlets assigned to a device against its running configuration",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_key": {"type": "string", "description": "Device key"}
                },
                "required": ["device_key"]
            }
        ),
        Tool(
            name="config_sync",
            description=(
                "Capture a device's running configuration into its RECONCILE_<fqdn> "
                "configlet and apply it"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "hostname": {
                        "type": "string",
                        "description": "Device FQDN, hostname or IP address"
                    }
                },
                "required": ["hostname"]
            }
        ),
        Tool(
            name="add_device",
            description="Add a device to the inventory",
            inputSchema={
                "type": "object",
                "properties": {
                    "ip_address": {"type": "string", "description": "Device IP address"},
                    "container_name": {
                        "type": "string",
                        "description": "Target container (default: Tenant)",
                        "default": "Tenant"
                    }
                },
                "required": ["ip_address"]
            }
        ),
        Tool(
            name="get_audit_log",
            description="Show recent configlet assignment changes",
            inputSchema={
                "type": "object",
                "properties": {
                    "device_id": {"type": "string", "description": "Filter by device key"},
                    "operation": {
                        "type": "string",
                        "description": "Filter by operation (apply_configlets, remove_configlets)"
                    },
                    "limit": {"type": "integer", "default": 20}
                },
                "required": []
            }
        ),
    ]


def _text(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    device_id = arguments.get("device_key") or arguments.get("hostname") or "N/A"

    async with timed_section(f"tool:{name}", device_id=device_id):
        try:
            if name == "get_audit_log":
                return await handle_get_audit_log(
                    arguments.get("device_id"),
                    arguments.get("operation"),
                    arguments.get("limit", 20)
                )

            mgr = get_manager()

            if name == "get_device_configlets":
                return await handle_get_device_configlets(mgr, arguments["device_key"])

            elif name == "add_configlet":
                await mgr.directory.add_configlet(arguments["name"], arguments["config"])
                return _text({"success": True, "configlet": arguments["name"]})

            elif name == "delete_configlet":
                await mgr.directory.delete_configlet(arguments["name"])
                return _text({"success": True, "deleted": arguments["name"]})

            elif name == "validate_configlet":
                report = await mgr.validate_configlet(arguments["device_key"], arguments["name"])
                return _text({"success": True, "report": report})

            elif name == "validate_config":
                report = await mgr.validate_config(arguments["device_key"], arguments["config"])
                return _text({"success": True, "report": report})

            elif name in ("apply_configlets", "remove_configlets"):
                return await handle_assignment(mgr, name, arguments)

            elif name == "validate_reconcile_all":
                report = await mgr.validate_and_reconcile_all(device_key=arguments["device_key"])
                return _text({"success": True, "report": report})

            elif name == "config_sync":
                result = await mgr.sync_running_config(hostname=arguments["hostname"])
                return _text({"success": result.reconcile_error is None, **result.to_dict()})

            elif name == "add_device":
                await mgr.inventory.add_device(
                    arguments["ip_address"],
                    container_name=arguments.get("container_name", "Tenant")
                )
                return _text({"success": True, "ip_address": arguments["ip_address"]})

            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

        except PartialCommit as e:
            logger.exception(f"Tool {name} left a staged action")
            return _text({
                "success": False,
                "error": str(e),
                "staged": e.result.to_dict(),
                "message": "The change is staged on the server but was not committed.",
            })

        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return [TextContent(type="text", text=f"Error: {str(e)}")]


# === TOOL HANDLERS ===

async def handle_get_device_configlets(
    mgr: ConfigletManager,
    device_key: str
) -> list[TextContent]:
    """List configlets assigned to a device."""
    configlets = await mgr.directory.get_configlets_by_device(device_key)
    return _text({
        "device_key": device_key,
        "configlets": [
            {"name": c.name, "key": c.key} for c in configlets
        ],
    })


async def handle_assignment(
    mgr: ConfigletManager,
    name: str,
    args: dict
) -> list[TextContent]:
    """Apply or remove configlets on a device."""
    operation = (
        mgr.apply_configlets_to_device
        if name == "apply_configlets"
        else mgr.remove_configlets_from_device
    )
    result = await operation(
        device_ip=args["device_ip"],
        device_name=args["device_name"],
        device_key=args["device_key"],
        configlet_names=args["configlets"],
        save=args.get("save", False),
    )

    response = {"success": True, **result.to_dict()}
    if not result.committed:
        response["message"] = "Change staged; run again with save=true to commit."
    return _text(response)


async def handle_get_audit_log(
    device_id: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 20
) -> list[TextContent]:
    """Get recent assignment changes from the audit log."""
    records = get_recent_changes(
        device_id=device_id,
        operation=operation,
        limit=limit
    )

    formatted_records = []
    for r in records:
        formatted_records.append({
            "timestamp": r.timestamp,
            "device_id": r.device_id,
            "operation": r.operation,
            "success": r.success,
            "state": r.state,
            "configlets": r.configlets,
            "excluded": r.excluded,
            "error": r.error,
        })

    return _text({
        "total_records": len(formatted_records),
        "filters": {
            "device_id": device_id,
            "operation": operation,
            "limit": limit,
        },
        "records": formatted_records,
    })


# === RESOURCES ===

@server.list_resources()
async def list_resources() -> list[Resource]:
    """List devices recently touched as configlet resources."""
    resources = []
    seen = set()

    for record in get_recent_changes(limit=100):
        if record.device_id in seen:
            continue
        seen.add(record.device_id)
        resources.append(Resource(
            uri=AnyUrl(f"cvp://devices/{record.device_id}/configlets"),
            name=f"{record.device_id} Configlets",
            description=f"Configlets assigned to {record.device_id}",
            mimeType="application/json",
        ))

    return resources


@server.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource."""
    # Parse URI: cvp://devices/<device_key>/configlets
    uri_str = str(uri)
    if uri_str.startswith("cvp://devices/"):
        parts = uri_str[len("cvp://devices/"):].split("/")
        if len(parts) >= 2 and parts[1] == "configlets":
            device_key = parts[0]
            configlets = await get_manager().directory.get_configlets_by_device(device_key)
            return json.dumps({"device_key": device_key, "configlets": names_of(configlets)})

    return json.dumps({"error": f"Unknown resource: {uri}"})


def main():
    """Run the MCP server."""

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    finally:
        if client:
            asyncio.run(client.close())


if __name__ == "__main__":
    main()
