"""
Client telemetry header.
"""

import base64
import json
import platform
from typing import Dict, Optional


TELEMETRY_HEADER = "Client-Telemetry"


class Telemetry:
    """Identifies the SDK (name, version, runtime) to the API."""

    def __init__(self, name: str, version: str, env: Optional[Dict[str, str]] = None) -> None:
        self.name = name
        self.version = version
        self.env = env if env is not None else {"python": platform.python_version()}

    @property
    def value(self) -> str:
        """URL-safe base64 of the compact JSON description."""
        payload = {"name": self.name, "version": self.version, "env": self.env}
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Telemetry(name={self.name!r}, version={self.version!r})"
