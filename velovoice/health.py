"""
Proactive vehicle health monitor.
Checks a telemetry snapshot against fixed thresholds.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import structlog

from .protocol import TelemetrySnapshot, ai_response
from .tools import ToolCall
from .tools.vehicle import get_vehicle_status, navigate

logger = structlog.get_logger()

REDLINE_RPM = 4000
LOW_BATTERY_PCT = 15
CHARGING_DESTINATION = "nearest charging station"


class AlertKind(str, Enum):
    REDLINE = "redline"
    BATTERY = "battery"


@dataclass
class HealthAlert:
    """A single proactive alert ready to be spoken."""
    kind: AlertKind
    text: str
    actions: list[ToolCall] = field(default_factory=list)

    def to_message(self) -> dict:
        return ai_response(self.text, self.actions)


def _plain(text: str) -> str:
    return text


def _reading(value) -> str:
    """Whole-number readings print without a decimal: 8.0 -> "8"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def evaluate(
    telemetry: TelemetrySnapshot,
    speak: Callable[[str], str] = _plain,
) -> list[HealthAlert]:
    """
    Evaluate telemetry and return zero, one or two alerts.

    Both thresholds are strict: exactly 4000 RPM or exactly 15% battery is
    not an alert. Tire pressure is not consulted.

    Args:
        telemetry: Snapshot reported by the client
        speak: Persona formatter applied to each alert text
    """
    alerts = []

    if telemetry.rpm > REDLINE_RPM:
        alerts.append(HealthAlert(
            kind=AlertKind.REDLINE,
            text=speak(
                f"engine RPM is critical at {_reading(telemetry.rpm)}. "
                "Easing off the throttle is advised to protect the motor."
            ),
            actions=[get_vehicle_status()],
        ))

    if telemetry.battery < LOW_BATTERY_PCT:
        alerts.append(HealthAlert(
            kind=AlertKind.BATTERY,
            text=speak(
                f"battery level is at {_reading(telemetry.battery)}%. "
                "Routing to the nearest charging station now."
            ),
            actions=[navigate(CHARGING_DESTINATION)],
        ))

    if alerts:
        logger.info(
            "health_alerts",
            kinds=[a.kind.value for a in alerts],
            rpm=telemetry.rpm,
            battery=telemetry.battery,
        )
    return alerts
