"""Connection and behaviour settings loaded from YAML.

Example ``cvp.yaml``:

```yaml
cvp:
  host: cvp.example.net
  username: cvpadmin
  password_env: CVP_PASSWORD
  verify_ssl: false
  page_size: 50
```
"""
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class CvpSettings:
    """Settings for talking to the management API."""
    host: str
    username: str
    password: Optional[str] = None
    password_env: str = "CVP_PASSWORD"
    base_path: str = "/web"
    verify_ssl: bool = True
    timeout: float = 30
    retries: int = 3
    retry_min_wait: float = 1
    retry_max_wait: float = 10
    # endIndex used when listing the configlets of a device
    page_size: int = 15
    reconcile_prefix: str = "RECONCILE_"
    abort_sync_on_reconcile_error: bool = False

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")

    @property
    def base_url(self) -> str:
        return f"https://{self.host}{self.base_path}"


def find_settings_file() -> str:
    """Find the cvp.yaml settings file."""
    env_path = os.environ.get("CVP_CONFIG")
    if env_path:
        return env_path

    search_paths = [
        Path.cwd() / "configs" / "cvp.yaml",
        Path.cwd() / "cvp.yaml",
        Path.home() / ".config" / "cvp-configlet" / "cvp.yaml",
        Path("/etc/cvp-configlet/cvp.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return str(path)

    raise FileNotFoundError(
        "Could not find cvp.yaml. Create one in ./configs/cvp.yaml or set CVP_CONFIG"
    )


def settings_from_dict(data: dict) -> CvpSettings:
    """Build settings from a mapping, applying environment overrides."""
    data = dict(data.get("cvp", data))

    known = {f.name for f in fields(CvpSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")

    if os.environ.get("CVP_HOST"):
        data["host"] = os.environ["CVP_HOST"]
    if os.environ.get("CVP_USER"):
        data["username"] = os.environ["CVP_USER"]

    for required in ("host", "username"):
        if not data.get(required):
            raise ValueError(f"Missing required setting: {required}")

    return CvpSettings(**data)


def load_settings(path: Optional[str] = None) -> CvpSettings:
    """Load settings from a YAML file."""
    config_path = path or find_settings_file()
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    settings = settings_from_dict(data)
    logger.info(f"Loaded settings from {config_path} (host={settings.host})")
    return settings
