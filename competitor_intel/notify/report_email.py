"""HTML report email: rendering and delivery through a notifier."""

from __future__ import annotations

import html
import re

from competitor_intel.analysis.scoring import sort_by_threat
from competitor_intel.models import CompetitorAnalysis, Report

_THREAT_STYLES = {
    "high": ("#fff5f5", "#fecaca", "#ef4444"),
    "medium": ("#fffbeb", "#fde68a", "#f59e0b"),
    "low": ("#f0fdf4", "#bbf7d0", "#22c55e"),
}

_PRIORITY_COLORS = {"high": "#ef4444", "medium": "#f59e0b", "low": "#22c55e"}


def email_subject(report: Report) -> str:
    return f"Competitor Intel: {report.company_name} vs {len(report.competitors)} Competitors"


def attachment_filename(report: Report) -> str:
    slug = re.sub(r"\s+", "-", report.company_name.strip().lower()) or "report"
    return f"competitor-intel-{slug}.html"


def render_report_email(report: Report) -> str:
    """Render the full report as a self-contained HTML document."""
    competitors = sort_by_threat(report.competitors)
    high_threats = [c for c in competitors if c.threat_level == "high"]
    top_threat = high_threats[0] if high_threats else (competitors[0] if competitors else None)
    first_rec = report.recommendations[0].action if report.recommendations else ""

    e = html.escape
    parts = [
        '<!DOCTYPE html>\n<html>\n<head><meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width"></head>',
        '<body style="font-family:-apple-system,BlinkMacSystemFont,sans-serif;max-width:680px;'
        'margin:0 auto;padding:20px;color:#1a1a1a;line-height:1.6;">',
        '<div style="border-bottom:3px solid #000;padding-bottom:16px;margin-bottom:24px;">',
        '<h1 style="margin:0;font-size:24px;">Competitor Intel Report</h1>',
        f'<p style="margin:4px 0 0;color:#666;">{e(report.company_name)} &mdash; {e(report.company_summary)}</p>',
        '</div>',
        '<div style="background:#f0f4ff;border-left:4px solid #2563eb;padding:16px;margin-bottom:24px;">',
        '<h2 style="margin:0 0 8px;font-size:16px;color:#2563eb;">Executive Summary</h2>',
        f'<p style="margin:0;"><strong>Top threat:</strong> '
        f'{e(top_threat.name) if top_threat else "N/A"} &mdash; '
        f'{e(top_threat.key_differentiator) if top_threat else ""}</p>',
        f'<p style="margin:8px 0 0;"><strong>Key insight:</strong> {e(first_rec)}</p>',
        '</div>',
    ]

    if report.market_overview:
        mo = report.market_overview
        parts.append(
            '<p style="font-size:14px;"><strong>Market:</strong> '
            f'{e(mo.total_addressable_market)} &bull; trend {e(mo.growth_trend)} '
            f'&bull; consolidation risk {e(mo.consolidation_risk)}</p>'
        )

    parts.append(_section_heading("Competitor Analysis"))
    if not competitors:
        parts.append('<p style="color:#666;">No direct competitors were identified.</p>')
    for i, c in enumerate(competitors, start=1):
        parts.append(_render_competitor(i, c))

    parts.append(_section_heading("Market Intelligence"))
    parts.append('<ul style="padding-left:20px;">')
    parts.extend(f'<li style="margin-bottom:8px;">{e(m)}</li>' for m in report.market_intelligence)
    parts.append("</ul>")

    parts.append(_section_heading("Recommendations"))
    parts.append('<ol style="padding-left:20px;">')
    for r in report.recommendations:
        impact = f' <span style="color:#666;">&mdash; {e(r.impact)}</span>' if r.impact else ""
        parts.append(
            f'<li style="margin-bottom:8px;"><span style="font-size:11px;font-weight:bold;'
            f'color:{_PRIORITY_COLORS[r.priority]};text-transform:uppercase;">{e(r.priority)}</span> '
            f'{e(r.action)}{impact}</li>'
        )
    parts.append("</ol>")

    parts.append(
        '<div style="margin-top:32px;padding-top:16px;border-top:1px solid #e5e5e5;'
        f'font-size:12px;color:#999;">Generated by Competitor Intel &bull; {e(report.source_url)}</div>'
    )
    parts.append("</body>\n</html>")
    return "\n".join(parts)


def _section_heading(title: str) -> str:
    return (
        '<h2 style="font-size:18px;border-bottom:1px solid #e5e5e5;padding-bottom:8px;">'
        f"{html.escape(title)}</h2>"
    )


def _render_competitor(index: int, c: CompetitorAnalysis) -> str:
    e = html.escape
    bg, border, badge = _THREAT_STYLES[c.threat_level]
    rows = [
        ("Pricing", c.pricing),
        ("Recent moves", c.recent_moves),
        ("Hiring signals", c.hiring_signals),
        ("Differentiator", c.key_differentiator),
    ]
    if c.funding_stage:
        rows.append(("Funding", c.funding_stage))
    if c.strengths:
        rows.append(("Strengths", "; ".join(c.strengths)))
    if c.weaknesses:
        rows.append(("Weaknesses", "; ".join(c.weaknesses)))

    table = "".join(
        '<tr><td style="padding:4px 8px 4px 0;font-weight:bold;vertical-align:top;white-space:nowrap;">'
        f'{e(label)}:</td><td style="padding:4px 0;">{e(value)}</td></tr>'
        for label, value in rows
    )
    score = f" {c.threat_score}" if c.threat_score is not None else ""
    return (
        f'<div style="margin-bottom:24px;padding:16px;background:{bg};border-radius:8px;border:1px solid {border};">'
        f'<h3 style="margin:0 0 8px;">{index}. {e(c.name)} '
        f'<span style="font-size:12px;padding:2px 8px;border-radius:12px;margin-left:8px;'
        f'background:{badge};color:white;">{e(c.threat_level.upper())}{score}</span></h3>'
        f'<p style="margin:0 0 4px;font-size:14px;color:#666;">{e(c.url)}</p>'
        f'<p style="margin:0 0 8px;">{e(c.summary)}</p>'
        f'<table style="width:100%;font-size:14px;">{table}</table>'
        "</div>"
    )


async def send_report(report: Report, recipient: str, notifier) -> None:
    """Render ``report`` and send it to ``recipient`` with an HTML copy attached.

    Raises NotifyError from the notifier.
    """
    body = render_report_email(report)
    await notifier.send(
        recipient,
        email_subject(report),
        body,
        [(attachment_filename(report), body.encode("utf-8"))],
    )
