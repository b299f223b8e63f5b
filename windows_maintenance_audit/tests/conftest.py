"""Shared fixtures: an in-memory :class:`HostProbe` implementation."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from windows_maintenance_audit.host import SourceUnavailable


class FakeHost:
    """Host probe answering from dictionaries supplied by each test.

    Any method named in ``failing`` raises :class:`SourceUnavailable`.
    """

    def __init__(
        self,
        *,
        tools: Iterable[str] = (),
        tool_output: Optional[Mapping[str, str]] = None,
        registry: Optional[Mapping[str, Mapping[str, object]]] = None,
        appx: Sequence[Mapping[str, object]] = (),
        startup: Sequence[Mapping[str, object]] = (),
        services: Sequence[Mapping[str, object]] = (),
        system_drive: str = "C:\\",
        disk_usage: Optional[Mapping[str, Tuple[int, int]]] = None,
        directory_sizes: Optional[Mapping[str, int]] = None,
        env: Optional[Mapping[str, str]] = None,
        physical_disks: Sequence[Mapping[str, object]] = (),
        adapters: Sequence[Mapping[str, object]] = (),
        rss: Optional[Mapping[str, Optional[bool]]] = None,
        dns: Sequence[str] = (),
        failing: Iterable[str] = (),
    ) -> None:
        self.tools = set(tools)
        self.tool_output = dict(tool_output or {})
        self.registry = {key.lower(): dict(values) for key, values in (registry or {}).items()}
        self._appx = list(appx)
        self._startup = list(startup)
        self._services = list(services)
        self._system_drive = system_drive
        self._disk_usage = dict(disk_usage or {})
        self._directory_sizes = dict(directory_sizes or {})
        self.env = dict(env or {})
        self._physical_disks = list(physical_disks)
        self._adapters = list(adapters)
        self._rss = dict(rss or {})
        self._dns = list(dns)
        self.failing = set(failing)
        self.calls: List[str] = []

    def _check(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failing:
            raise SourceUnavailable(f"{method} is unavailable")

    def tool_available(self, name: str) -> bool:
        return name in self.tools

    def run_tool(self, args: Sequence[str]) -> str:
        self._check(f"run_tool:{args[0]}")
        if args[0] not in self.tool_output:
            raise SourceUnavailable(f"'{args[0]}' is not installed")
        return self.tool_output[args[0]]

    def registry_key_exists(self, key_path: str) -> bool:
        self._check("registry_key_exists")
        return key_path.lower() in self.registry

    def registry_subkeys(self, key_path: str) -> List[str]:
        self._check("registry_subkeys")
        prefix = key_path.lower() + "\\"
        names = []
        for key in self.registry:
            if key.startswith(prefix) and "\\" not in key[len(prefix):]:
                names.append(key[len(prefix):])
        return names

    def registry_values(self, key_path: str) -> Dict[str, object]:
        self._check("registry_values")
        return dict(self.registry.get(key_path.lower(), {}))

    def registry_value(self, key_path: str, name: str) -> Optional[object]:
        self._check("registry_value")
        return self.registry.get(key_path.lower(), {}).get(name)

    def appx_packages(self) -> List[Dict[str, object]]:
        self._check("appx_packages")
        return [dict(row) for row in self._appx]

    def startup_commands(self) -> List[Dict[str, object]]:
        self._check("startup_commands")
        return [dict(row) for row in self._startup]

    def services(self) -> List[Dict[str, object]]:
        self._check("services")
        return [dict(row) for row in self._services]

    def system_drive(self) -> str:
        return self._system_drive

    def disk_usage(self, path: str) -> Tuple[int, int]:
        self._check("disk_usage")
        if path not in self._disk_usage:
            raise SourceUnavailable(f"No such drive {path}")
        return self._disk_usage[path]

    def directory_size(self, path: str) -> int:
        self._check("directory_size")
        return self._directory_sizes.get(path, 0)

    def expand_path(self, path: str) -> str:
        return re.sub(r"%([^%]+)%", lambda match: self.env.get(match.group(1), match.group(0)), path)

    def physical_disks(self) -> List[Dict[str, object]]:
        self._check("physical_disks")
        return [dict(row) for row in self._physical_disks]

    def network_adapters(self) -> List[Dict[str, object]]:
        self._check("network_adapters")
        return [dict(row) for row in self._adapters]

    def rss_enabled(self, adapter: str) -> Optional[bool]:
        self._check("rss_enabled")
        if adapter not in self._rss:
            raise SourceUnavailable(f"No RSS settings for {adapter}")
        return self._rss[adapter]

    def dns_servers(self) -> List[str]:
        self._check("dns_servers")
        return list(self._dns)


@pytest.fixture
def make_host():
    """Return a factory building :class:`FakeHost` instances."""

    return FakeHost
