"""Message formatters for Telegram alerts."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

# Telegram caps a message at 4096 characters; keep each block well under it
FIELD_VALUE_LIMIT = 1024


def truncate(text: str, max_length: int) -> str:
    """Truncate a string, adding an ellipsis if it was cut."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def format_duration(seconds: float) -> str:
    """Compact duration such as 2d 3h or 45m."""
    seconds = max(0, int(seconds))
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


@dataclass
class ScamAlert:
    """Data for a scam alert."""

    kind: str  # a HuntType value, or "redirect"
    initial_url: str
    final_url: str
    confidence: float
    redirect_path: list[str] = field(default_factory=list)
    is_new: bool = True
    ad_text: Optional[str] = None
    cloaker_candidate: Optional[str] = None
    signals: list[str] = field(default_factory=list)


class AlertFormatter:
    """Formats alert messages for Telegram."""

    TITLES = {
        "search_ad": ("NEW SEARCH AD SCAM DETECTED", "EXISTING SEARCH AD NOW MARKED AS SCAM"),
        "typosquat": ("NEW TYPOSQUAT SCAM DESTINATION", "TYPOSQUAT DESTINATION NOW MARKED AS SCAM"),
        "ad_network": ("NEW AD NETWORK SCAM DETECTED", "EXISTING AD NETWORK AD NOW MARKED AS SCAM"),
        "redirect": ("NEW REDIRECT SCAM DESTINATION", "REDIRECT DESTINATION NOW MARKED AS SCAM"),
    }

    SERVICE_LABELS = (
        ("safebrowsing_flagged_at", "SafeBrowsing"),
        ("netcraft_flagged_at", "Netcraft"),
        ("smartscreen_flagged_at", "SmartScreen"),
        ("dns_unresolvable_at", "DNS"),
    )

    @classmethod
    def title(cls, kind: str, is_new: bool) -> str:
        new_title, existing_title = cls.TITLES.get(kind, cls.TITLES["redirect"])
        emoji = "🚨" if is_new else "⚠️"
        return f"{emoji} {new_title if is_new else existing_title} {emoji}"

    @staticmethod
    def format_redirect_path(initial_url: str, final_url: str, path: list[str]) -> str:
        """Numbered hop list, cut off with a count once it nears the field limit."""
        if not path:
            return f"Initial: {truncate(initial_url, 400)}\nFinal: {truncate(final_url, 400)}"

        lines = []
        used = 0
        for i, hop in enumerate(path):
            line = f"{i + 1}. {hop}"
            # Reserve space for the truncation notice
            if used + len(line) + 1 > FIELD_VALUE_LIMIT - 50:
                lines.append(f"... and {len(path) - i} more redirect(s)")
                break
            lines.append(line)
            used += len(line) + 1
        return "\n".join(lines)

    @classmethod
    def format_scam_alert(cls, alert: ScamAlert) -> str:
        lines = [cls.title(alert.kind, alert.is_new), ""]

        if alert.kind == "typosquat":
            lines.append(f"Typosquat Domain: {truncate(alert.initial_url, FIELD_VALUE_LIMIT)}")
            lines.append(f"Final URL: {truncate(alert.final_url, FIELD_VALUE_LIMIT)}")
            lines.append("")
        elif alert.kind == "search_ad" and alert.ad_text:
            ad_text = " ".join(alert.ad_text.split())
            lines.append(f"Ad Text: {truncate(ad_text, FIELD_VALUE_LIMIT)}")
            lines.append("")

        lines.append("Redirect Path:")
        lines.append(cls.format_redirect_path(alert.initial_url, alert.final_url, alert.redirect_path))

        if alert.cloaker_candidate:
            lines.append("")
            lines.append(f"Potential Cloaker: {truncate(alert.cloaker_candidate, FIELD_VALUE_LIMIT)}")

        if alert.signals:
            lines.append("")
            lines.append(f"Signals: {', '.join(alert.signals)}")

        lines.append("")
        lines.append(f"Confidence: {alert.confidence * 100:.2f}%")
        return "\n".join(lines)

    @staticmethod
    def format_cloaker_added(url: str, redirect_type: str, origin: str) -> str:
        return f"✅ Added to redirect checker: {url} ({redirect_type}, from {origin.replace('_', ' ')})"

    @staticmethod
    def format_status(sources: list[dict], destination_counts: dict[int, int], summary: dict) -> str:
        if not sources:
            lines = ["No sources are being monitored."]
        else:
            lines = [f"Monitoring {len(sources)} source(s):", ""]
            for source in sources[:30]:
                count = destination_counts.get(source["id"], 0)
                lines.append(
                    f"• {truncate(source['url'], 120)} [{source['resolution_type']}] "
                    f"- {count} destination(s)"
                )
            if len(sources) > 30:
                lines.append(f"... and {len(sources) - 30} more")

        lines.extend([
            "",
            f"Takedown checks: {summary.get('active', 0)} active of {summary.get('total', 0)}",
        ])
        return "\n".join(lines)

    @classmethod
    def format_takedowns(cls, rows: list[dict], summary: dict) -> str:
        if not rows:
            return "No takedowns found."

        lines = ["🛡️ Recent Takedowns", ""]
        for row in rows:
            first_seen = parse_timestamp(row.get("first_seen"))
            indicators = []
            for column, label in cls.SERVICE_LABELS:
                flagged_at = parse_timestamp(row.get(column))
                if flagged_at is None:
                    continue
                if first_seen is not None:
                    delta = format_duration((flagged_at - first_seen).total_seconds())
                    indicators.append(f"{label} {delta}")
                else:
                    indicators.append(label)
            lines.append(truncate(row.get("destination_url") or "", 200))
            lines.append(f"  {' | '.join(indicators)}")

        lines.extend([
            "",
            "Flagged by: "
            f"SafeBrowsing: {summary.get('safebrowsing', 0)} | "
            f"Netcraft: {summary.get('netcraft', 0)} | "
            f"SmartScreen: {summary.get('smartscreen', 0)} | "
            f"DNS: {summary.get('dns_unresolvable', 0)}",
        ])
        return "\n".join(lines)

    @staticmethod
    def format_report_results(url: str, results: list, queued: list[str]) -> str:
        lines = [f"📨 Reported {truncate(url, 400)}"]
        for result in results:
            line = f"• {result.platform}: {result.status.value}"
            if result.message and not result.ok:
                line += f" ({truncate(result.message, 120)})"
            lines.append(line)
        if queued:
            lines.append(f"Queued for batch submission: {', '.join(queued)}")
        if not results and not queued:
            lines.append("No reporting services are configured.")
        return "\n".join(lines)

    @staticmethod
    def format_help() -> str:
        return (
            "CloakWatch commands\n\n"
            "/add <url> <type> [regex] - monitor a redirect source\n"
            "   types: http, fingerprint_post, staged_script, browser, browser_referred\n"
            "/remove <url> - stop monitoring a source\n"
            "/status - monitored sources and destinations\n"
            "/takedowns [n] - recent takedowns (default 10, max 20)\n"
            "/report <url> - submit a URL to every reporting service\n"
            "/help - this message"
        )
