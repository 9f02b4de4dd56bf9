"""
Digest rendering shared by the notifiers.

A digest lists every alerting meter of one owner with a line per alert.
"""

from html import escape
from typing import List

from fluidwatch.models.alerts import FluidMeterAlerts
from fluidwatch.models.meter import Account

DIGEST_SUBJECT = "Alerts for your fluid meters"


def render_text(account: Account, meter_alerts: List[FluidMeterAlerts]) -> str:
    """
    Render a plain-text digest.

    Example:
        >>> print(render_text(account, meter_alerts))
        Hello Jane,
        <BLANKLINE>
        Kitchen (meter-1):
          - ConstantFlow: Water has been flowing non-stop. There may be a leak.
    """
    lines = [f"Hello {account.name},", ""]
    for entry in meter_alerts:
        lines.append(f"{entry.meter.name} ({entry.meter.id}):")
        for alert in entry.alerts:
            lines.append(f"  - {alert.alert_type.value}: {alert.alert_type.description}")
    return "\n".join(lines)


def render_html(account: Account, meter_alerts: List[FluidMeterAlerts]) -> str:
    """Render the digest as a small HTML document for e-mail."""
    parts = [f"<html><body>Hello {escape(account.name)},<br /><br />"]
    for entry in meter_alerts:
        parts.append(f"<b>{escape(entry.meter.name)}</b><ul>")
        for alert in entry.alerts:
            parts.append(f"<li>{escape(alert.alert_type.description)}</li>")
        parts.append("</ul>")
    parts.append("</body></html>")
    return "".join(parts)
