"""Access to host data sources used by the collectors and scanners.

Every audit component receives a :class:`HostProbe` rather than touching the
registry, PowerShell or :mod:`psutil` directly. :class:`WindowsHost` is the
production implementation; tests provide an in-memory fake.

Methods raise :class:`SourceUnavailable` when the underlying data source
cannot be read (tool missing, access denied, unsupported platform). Callers
treat that as an empty contribution and carry on.
"""
from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import psutil

try:  # Registry access only exists on Windows
    import winreg
except ImportError:  # pragma: no cover - exercised only on non-Windows hosts
    winreg = None  # type: ignore

from .utils import CommandFailed, as_list, run_command, run_powershell


class SourceUnavailable(Exception):
    """A single data source could not be read."""


class HostProbe(Protocol):
    """Read-only view of the host used by collectors and scanners."""

    def tool_available(self, name: str) -> bool: ...

    def run_tool(self, args: Sequence[str]) -> str: ...

    def registry_key_exists(self, key_path: str) -> bool: ...

    def registry_subkeys(self, key_path: str) -> List[str]: ...

    def registry_values(self, key_path: str) -> Dict[str, object]: ...

    def registry_value(self, key_path: str, name: str) -> Optional[object]: ...

    def appx_packages(self) -> List[Dict[str, object]]: ...

    def startup_commands(self) -> List[Dict[str, object]]: ...

    def services(self) -> List[Dict[str, object]]: ...

    def system_drive(self) -> str: ...

    def disk_usage(self, path: str) -> Tuple[int, int]: ...

    def directory_size(self, path: str) -> int: ...

    def expand_path(self, path: str) -> str: ...

    def physical_disks(self) -> List[Dict[str, object]]: ...

    def network_adapters(self) -> List[Dict[str, object]]: ...

    def rss_enabled(self, adapter: str) -> Optional[bool]: ...

    def dns_servers(self) -> List[str]: ...


_HIVES = {
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKEY_LOCAL_MACHINE": "HKEY_LOCAL_MACHINE",
    "HKCU": "HKEY_CURRENT_USER",
    "HKEY_CURRENT_USER": "HKEY_CURRENT_USER",
}


def split_key_path(key_path: str) -> Tuple[str, str]:
    """Split ``HKLM\\SOFTWARE\\...`` into a canonical hive name and subkey."""

    hive, _, subkey = key_path.partition("\\")
    try:
        return _HIVES[hive.upper()], subkey
    except KeyError:
        raise ValueError(f"Unsupported registry hive in '{key_path}'") from None


class WindowsHost:
    """:class:`HostProbe` backed by ``winreg``, :mod:`psutil` and PowerShell."""

    def __init__(self, *, command_timeout: int = 60) -> None:
        self.command_timeout = command_timeout

    # Tools -----------------------------------------------------------------

    def tool_available(self, name: str) -> bool:
        return shutil.which(name) is not None

    def run_tool(self, args: Sequence[str]) -> str:
        if not self.tool_available(args[0]):
            raise SourceUnavailable(f"'{args[0]}' is not installed")
        try:
            return run_command(args, timeout=self.command_timeout)
        except CommandFailed as exc:
            raise SourceUnavailable(str(exc)) from exc

    def _powershell_json(self, script: str) -> List[Dict[str, object]]:
        try:
            output = run_powershell(f"{script} | ConvertTo-Json -Compress -Depth 3", timeout=self.command_timeout)
        except CommandFailed as exc:
            raise SourceUnavailable(str(exc)) from exc
        if not output:
            return []
        try:
            return [item for item in as_list(json.loads(output)) if isinstance(item, dict)]
        except ValueError as exc:
            raise SourceUnavailable(f"Unparseable PowerShell output: {exc}") from exc

    # Registry --------------------------------------------------------------

    def _open_key(self, key_path: str):
        if winreg is None:
            raise SourceUnavailable("The Windows registry is not available on this platform")
        hive_name, subkey = split_key_path(key_path)
        try:
            return winreg.OpenKey(getattr(winreg, hive_name), subkey, 0, winreg.KEY_READ)
        except FileNotFoundError:
            return None
        except PermissionError as exc:
            raise SourceUnavailable(f"Access denied to {key_path}") from exc

    def registry_key_exists(self, key_path: str) -> bool:
        key = self._open_key(key_path)
        if key is None:
            return False
        winreg.CloseKey(key)
        return True

    def registry_subkeys(self, key_path: str) -> List[str]:
        key = self._open_key(key_path)
        if key is None:
            return []
        try:
            count = winreg.QueryInfoKey(key)[0]
            names = []
            for index in range(count):
                try:
                    names.append(winreg.EnumKey(key, index))
                except OSError:
                    continue
            return names
        finally:
            winreg.CloseKey(key)

    def registry_values(self, key_path: str) -> Dict[str, object]:
        key = self._open_key(key_path)
        if key is None:
            return {}
        try:
            count = winreg.QueryInfoKey(key)[1]
            values: Dict[str, object] = {}
            for index in range(count):
                try:
                    name, data, _ = winreg.EnumValue(key, index)
                except OSError:
                    continue
                values[name] = data
            return values
        finally:
            winreg.CloseKey(key)

    def registry_value(self, key_path: str, name: str) -> Optional[object]:
        key = self._open_key(key_path)
        if key is None:
            return None
        try:
            value, _ = winreg.QueryValueEx(key, name)
            return value
        except FileNotFoundError:
            return None
        finally:
            winreg.CloseKey(key)

    # Packages and startup --------------------------------------------------

    def appx_packages(self) -> List[Dict[str, object]]:
        return self._powershell_json(
            "Get-AppxPackage | Select-Object Name, PackageFullName, Publisher, Version, InstallLocation"
        )

    def startup_commands(self) -> List[Dict[str, object]]:
        rows = self._powershell_json(
            "Get-CimInstance Win32_StartupCommand | Select-Object Name, Command, Location, User"
        )
        return [
            {
                "name": row.get("Name") or "",
                "command": row.get("Command") or "",
                "location": row.get("Location") or "",
                "user": row.get("User") or "",
            }
            for row in rows
        ]

    def services(self) -> List[Dict[str, object]]:
        service_iter = getattr(psutil, "win_service_iter", None)
        if service_iter is None:
            raise SourceUnavailable("Service enumeration requires Windows")
        services: List[Dict[str, object]] = []
        for service in service_iter():
            try:
                info = service.as_dict()
            except (psutil.Error, OSError):
                continue
            services.append(
                {
                    "name": info.get("name") or "",
                    "display_name": info.get("display_name") or "",
                    "start_type": info.get("start_type") or "",
                    "status": info.get("status") or "",
                }
            )
        return services

    # Disks -----------------------------------------------------------------

    def system_drive(self) -> str:
        return os.environ.get("SystemDrive", "C:") + "\\"

    def disk_usage(self, path: str) -> Tuple[int, int]:
        try:
            usage = psutil.disk_usage(path)
        except OSError as exc:
            raise SourceUnavailable(f"Cannot read disk usage for {path}: {exc}") from exc
        return usage.total, usage.free

    def directory_size(self, path: str) -> int:
        root = Path(path)
        if not root.is_dir():
            return 0
        total = 0
        for dirpath, _dirnames, filenames in os.walk(root):
            for filename in filenames:
                try:
                    file_path = Path(dirpath) / filename
                    if not file_path.is_symlink():
                        total += file_path.stat().st_size
                except OSError:
                    continue
        return total

    def expand_path(self, path: str) -> str:
        return os.path.expandvars(path)

    def physical_disks(self) -> List[Dict[str, object]]:
        rows = self._powershell_json(
            "Get-PhysicalDisk | Select-Object FriendlyName, MediaType, BusType, DeviceId"
        )
        return [
            {
                "name": row.get("FriendlyName") or "",
                "media_type": str(row.get("MediaType") or ""),
                "bus_type": str(row.get("BusType") or ""),
                "device_id": str(row.get("DeviceId") or ""),
            }
            for row in rows
        ]

    # Network ---------------------------------------------------------------

    def network_adapters(self) -> List[Dict[str, object]]:
        try:
            stats = psutil.net_if_stats()
        except OSError as exc:
            raise SourceUnavailable(f"Cannot read network adapters: {exc}") from exc
        return [
            {
                "name": name,
                "is_up": info.isup,
                # psutil reports link speed in Mbit/s
                "link_speed_bps": int(info.speed) * 1_000_000,
            }
            for name, info in stats.items()
        ]

    def rss_enabled(self, adapter: str) -> Optional[bool]:
        escaped = adapter.replace("'", "''")
        rows = self._powershell_json(
            f"Get-NetAdapterRss -Name '{escaped}' -ErrorAction Stop | Select-Object Name, Enabled"
        )
        if not rows:
            return None
        return bool(rows[0].get("Enabled"))

    def dns_servers(self) -> List[str]:
        rows = self._powershell_json(
            "Get-DnsClientServerAddress -AddressFamily IPv4 | Select-Object InterfaceAlias, ServerAddresses"
        )
        servers: List[str] = []
        for row in rows:
            servers.extend(str(address) for address in as_list(row.get("ServerAddresses")))
        return servers


__all__ = ["HostProbe", "SourceUnavailable", "WindowsHost", "split_key_path"]
