"""Visual effects, animation and taskbar checks."""
from __future__ import annotations

from typing import Callable, NamedTuple, Optional, Tuple

from ..findings import ImpactTier, OptimizationOpportunity
from ..host import HostProbe
from . import ScannerReport, register_scanner


class UISetting(NamedTuple):
    """A registry value whose current data is compared with a recommendation."""

    check: str
    key_path: str
    value_name: str
    is_suboptimal: Callable[[Optional[object]], bool]
    description: str
    impact: ImpactTier
    estimated_savings: str


def _as_int(value: Optional[object]) -> Optional[int]:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _not_best_performance(value: Optional[object]) -> bool:
    # 2 = "Adjust for best performance"; missing means Windows chooses (effects on)
    return _as_int(value) != 2


def _menu_delay_too_long(value: Optional[object]) -> bool:
    delay = _as_int(value)
    return delay is None or delay > 200


def _enabled(value: Optional[object]) -> bool:
    number = _as_int(value)
    return number is None or number != 0


UI_SETTINGS: Tuple[UISetting, ...] = (
    UISetting(
        check="visual_effects",
        key_path=r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\VisualEffects",
        value_name="VisualFXSetting",
        is_suboptimal=_not_best_performance,
        description="Visual effects are not set to 'Adjust for best performance'",
        impact=ImpactTier.MEDIUM,
        estimated_savings="Snappier window and menu rendering",
    ),
    UISetting(
        check="menu_show_delay",
        key_path=r"HKCU\Control Panel\Desktop",
        value_name="MenuShowDelay",
        is_suboptimal=_menu_delay_too_long,
        description="Menu show delay is longer than 200 ms",
        impact=ImpactTier.LOW,
        estimated_savings="Menus open up to 200 ms faster",
    ),
    UISetting(
        check="minimize_animation",
        key_path=r"HKCU\Control Panel\Desktop\WindowMetrics",
        value_name="MinAnimate",
        is_suboptimal=_enabled,
        description="Window minimize/maximize animation is enabled",
        impact=ImpactTier.LOW,
        estimated_savings="Instant window minimize and restore",
    ),
    UISetting(
        check="taskbar_animations",
        key_path=r"HKCU\Software\Microsoft\Windows\CurrentVersion\Explorer\Advanced",
        value_name="TaskbarAnimations",
        is_suboptimal=_enabled,
        description="Taskbar animations are enabled",
        impact=ImpactTier.LOW,
        estimated_savings="Reduced taskbar redraw overhead",
    ),
    UISetting(
        check="transparency",
        key_path=r"HKCU\Software\Microsoft\Windows\CurrentVersion\Themes\Personalize",
        value_name="EnableTransparency",
        is_suboptimal=_enabled,
        description="Transparency effects are enabled",
        impact=ImpactTier.LOW,
        estimated_savings="Lower GPU use on integrated graphics",
    ),
)


@register_scanner("ui")
def scan_ui(host: HostProbe) -> ScannerReport:
    """Flag sub-optimal visual effects, animation and taskbar settings."""

    report = ScannerReport()
    for setting in UI_SETTINGS:
        report.run_check(setting.check, lambda setting=setting: _check_setting(host, report, setting))
    return report


def _check_setting(host: HostProbe, report: ScannerReport, setting: UISetting) -> None:
    value = host.registry_value(setting.key_path, setting.value_name)
    report.count("settings_checked")
    if not setting.is_suboptimal(value):
        return
    report.count("suboptimal_settings")
    report.opportunities.append(
        OptimizationOpportunity(
            category="UI",
            type=setting.check.replace("_", " ").title(),
            description=setting.description,
            impact=setting.impact,
            estimated_savings=setting.estimated_savings,
            target=f"{setting.key_path}\\{setting.value_name}",
        )
    )


__all__ = ["UISetting", "UI_SETTINGS", "scan_ui"]
