"""Shared fixtures: a recording fake of the HTTP transport."""
import json
from typing import Any, Callable, Optional, Union

import pytest

from cvp_configlet.configlets import ConfigletManager
from cvp_configlet.utils.audit_log import ChangeTracker

STAGE_PATH = "/provisioning/addTempAction.do?format=topology&queryParam=&nodeId=root"
COMMIT_PATH = "/provisioning/v2/saveTopology.do"
BY_NAME_PATH = "/configlet/getConfigletByName.do"
BY_DEVICE_PATH = "/provisioning/getConfigletsByNetElementId.do"
VALIDATE_PATH = "/provisioning/v2/validateAndCompareConfiglets.do"

Route = Union[dict, list, bytes, Exception, Callable[..., Any]]


class FakeTransport:
    """Records every call and answers from canned routes keyed by path."""

    def __init__(self):
        self.calls: list[tuple[str, str, Any]] = []
        self.routes: dict[tuple[str, str], Route] = {}

    def on_get(self, path: str, response: Route) -> None:
        self.routes[("GET", path)] = response

    def on_call(self, path: str, response: Route) -> None:
        self.routes[("POST", path)] = response

    def _answer(self, method: str, path: str, arg: Any) -> bytes:
        self.calls.append((method, path, arg))
        if (method, path) not in self.routes:
            raise AssertionError(f"Unexpected {method} {path}")
        response = self.routes[(method, path)]
        if callable(response) and not isinstance(response, Exception):
            response = response(arg)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, bytes):
            return response
        return json.dumps(response).encode()

    async def get(self, path: str, params: Optional[dict] = None) -> bytes:
        return self._answer("GET", path, params)

    async def call(self, payload: Any, path: str) -> bytes:
        return self._answer("POST", path, payload)

    def calls_to(self, path: str) -> list[Any]:
        return [arg for _, p, arg in self.calls if p == path]


def configlet_record(name: str, key: str, config: Optional[str] = None) -> dict:
    record = {"name": name, "key": key}
    if config is not None:
        record["config"] = config
    return record


def paged(assigned: list[dict]) -> Callable[[dict], dict]:
    """Answer device configlet reads one startIndex/endIndex window at a time."""
    def answer(params):
        window = assigned[params["startIndex"]:params["endIndex"]]
        return {"total": len(assigned), "configletList": window}
    return answer


def serve_configlets(
    fake: FakeTransport,
    assigned: list[dict],
    directory: dict[str, dict],
) -> None:
    """Route the device assignment and name lookups plus stage/commit."""
    fake.on_get(BY_DEVICE_PATH, paged(assigned))

    def by_name(params):
        record = directory.get(params["name"])
        if record is None:
            return {"errorCode": "132801", "errorMessage": "Entity does not exist"}
        return record

    fake.on_get(BY_NAME_PATH, by_name)
    fake.on_call(STAGE_PATH, {"data": "success"})
    fake.on_call(COMMIT_PATH, {"data": {"taskIds": ["12"]}})


@pytest.fixture
def fake() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def manager(fake) -> ConfigletManager:
    return ConfigletManager(fake, tracker=ChangeTracker(user="pytest"))
