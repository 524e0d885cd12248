"""
Weekly digest generation from recently stored records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from regsync.sources.models import RegulatoryRecord

MEDIUM_SHOWN = 5
LOW_SHOWN = 3

_templates = Environment(
    loader=PackageLoader("regsync", "templates"),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class Digest:
    """A rendered weekly digest awaiting operator review."""

    title: str
    content: str
    total: int
    generated_at: datetime
    html: str = ""
    by_priority: Dict[str, int] = field(default_factory=dict)
    id: Optional[int] = None


def _line(record: RegulatoryRecord) -> str:
    published = record.published_at.strftime("%Y-%m-%d") if record.published_at else "unknown"
    text = f"• {record.title}\n"
    if record.content:
        text += f"  {record.content[:300]}\n"
    text += f"  Source: {record.region or record.source_id} | Published: {published}\n"
    return text


def build_digest(records: List[RegulatoryRecord], generated_at: datetime) -> Digest:
    """Group records by priority and render the digest as plain text and HTML.

    All high/urgent records are listed; medium and low are truncated with an
    "... and N more" line.
    """
    high = [r for r in records if r.priority in ("urgent", "high")]
    medium = [r for r in records if r.priority == "medium"]
    low = [r for r in records if r.priority not in ("urgent", "high", "medium")]

    date_label = generated_at.strftime("%d %b %Y")
    sections = [
        "Weekly Regulatory Intelligence Report",
        f"Generated: {date_label}",
        "",
        "EXECUTIVE SUMMARY",
        f"This week we tracked {len(records)} regulatory updates.",
    ]

    if high:
        sections += ["", f"HIGH PRIORITY UPDATES ({len(high)})"]
        sections += [_line(r) for r in high]

    if medium:
        sections += ["", f"MEDIUM PRIORITY UPDATES ({len(medium)})"]
        sections += [_line(r) for r in medium[:MEDIUM_SHOWN]]
        if len(medium) > MEDIUM_SHOWN:
            sections.append(f"... and {len(medium) - MEDIUM_SHOWN} more medium priority updates")

    if low:
        sections += ["", f"OTHER UPDATES ({len(low)})"]
        sections += [f"• {r.title}" for r in low[:LOW_SHOWN]]
        if len(low) > LOW_SHOWN:
            sections.append(f"... and {len(low) - LOW_SHOWN} more updates")

    return Digest(
        title=f"Weekly Regulatory Updates - {date_label}",
        content="\n".join(sections).strip(),
        html=render_html(high, medium, low, generated_at),
        total=len(records),
        generated_at=generated_at,
        by_priority={"high": len(high), "medium": len(medium), "low": len(low)},
    )


def _section(heading, css, records, shown, detailed, more_label=""):
    return {
        "heading": heading,
        "css": css,
        "count": len(records),
        "records": records[:shown] if shown else records,
        "detailed": detailed,
        "hidden": max(len(records) - shown, 0) if shown else 0,
        "more_label": more_label,
    }


def render_html(
    high: List[RegulatoryRecord],
    medium: List[RegulatoryRecord],
    low: List[RegulatoryRecord],
    generated_at: datetime,
) -> str:
    """Render the HTML digest from already grouped records."""
    sections = []
    if high:
        sections.append(_section("High Priority Updates", "high", high, None, True))
    if medium:
        sections.append(
            _section(
                "Medium Priority Updates",
                "medium",
                medium,
                MEDIUM_SHOWN,
                True,
                "medium priority updates",
            )
        )
    if low:
        sections.append(_section("Other Updates", "low", low, LOW_SHOWN, False, "updates"))

    date_label = generated_at.strftime("%d %b %Y")
    return _templates.get_template("digest.html").render(
        title=f"Weekly Regulatory Updates - {date_label}",
        date_label=date_label,
        total=len(high) + len(medium) + len(low),
        sections=sections,
    )
