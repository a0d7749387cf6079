"""Plain-text and HTML rendering of a contact submission.

Every user-supplied value is escaped before it is placed into HTML. The
plain-text body is shared by all styles.
"""
from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Optional

from app.schemas.contact import ContactPayload
from app.services.delivery.base import RenderedMessage

BRAND_COLORS = {
    "primary": "#c0a88d",
    "bg": "#1a1a1a",
    "surface": "#0f0f0f",
    "text": "#e5e2dd",
    "muted": "#999999",
    "border": "#333333",
}


def _single_line(text: str) -> str:
    return " ".join(text.split())


def escape_html(text: str) -> str:
    """Escape ``& < > " '`` for safe interpolation into HTML."""
    return html.escape(text, quote=True)


def _render_text(
    payload: ContactPayload, reference_id: str, client_ip: str, site_name: str, when: datetime
) -> str:
    lines = [
        "New Contact Form Submission",
        "============================",
        "",
        f"Reference ID: {reference_id}",
        "",
        f"From: {payload.name}",
        f"Email: {payload.email}",
        f"IP: {client_ip}",
        f"Time: {when.isoformat()}",
        "",
        "Message:",
        payload.message,
        "",
        "---",
        f"This message was sent via the {site_name} contact form.",
    ]
    return "\n".join(lines)


def _render_classic_html(
    payload: ContactPayload, reference_id: str, client_ip: str, site_name: str, when: datetime
) -> str:
    site = escape_html(site_name)
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <style>
    body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }}
    .header {{ background: #000; color: #0f0; padding: 20px; text-align: center; font-family: monospace; }}
    .content {{ background: #f9f9f9; padding: 20px; border: 1px solid #ddd; }}
    .label {{ font-weight: bold; color: #666; font-size: 12px; text-transform: uppercase; }}
    .message {{ background: #fff; padding: 15px; border-left: 3px solid #0f0; white-space: pre-wrap; }}
    .footer {{ font-size: 12px; color: #999; margin-top: 20px; text-align: center; }}
  </style>
</head>
<body>
  <div class="header"><h2 style="margin: 0;">{site} Contact</h2></div>
  <div class="content">
    <div class="label">Reference ID</div>
    <div class="value"><code>{escape_html(reference_id)}</code></div>
    <div class="label">From</div>
    <div class="value">{escape_html(payload.name)}</div>
    <div class="label">Email</div>
    <div class="value"><a href="mailto:{escape_html(payload.email)}">{escape_html(payload.email)}</a></div>
    <div class="label">Message</div>
    <div class="message">{escape_html(payload.message)}</div>
  </div>
  <div class="footer">
    Sent via {site} contact form at {when.isoformat()}<br>
    Client IP: {escape_html(client_ip)}
  </div>
</body>
</html>"""


def _render_branded_html(
    payload: ContactPayload, reference_id: str, client_ip: str, site_name: str, when: datetime
) -> str:
    c = BRAND_COLORS
    site = escape_html(site_name)
    font = "'SF Mono', Monaco, Consolas, 'Courier New', monospace"
    stamp = when.strftime("%b %d, %Y &bull; %H:%M")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="color-scheme" content="light only">
  <title>New Message - {site}</title>
</head>
<body style="margin: 0; padding: 0; width: 100%; background-color: {c['bg']};">
  <div style="display: none; max-height: 0; overflow: hidden;">New message from {escape_html(payload.name)} via {site}</div>
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" border="0" bgcolor="{c['bg']}">
    <tr><td align="center" style="padding: 32px 16px; font-family: {font};">
      <table role="presentation" width="560" cellpadding="0" cellspacing="0" border="0" style="max-width: 560px; width: 100%;">
        <tr><td style="border-bottom: 1px solid {c['border']}; padding-bottom: 20px; color: {c['muted']}; font-size: 12px;">
          {site.upper()} &nbsp; {stamp}
        </td></tr>
        <tr><td style="padding: 24px 0 8px; color: {c['text']}; font-size: 18px;">New Contact Message</td></tr>
        <tr><td style="color: {c['muted']}; font-size: 12px;">Reference: <span style="color: {c['primary']};">{escape_html(reference_id)}</span></td></tr>
        <tr><td style="padding-top: 24px; color: {c['muted']}; font-size: 11px; text-transform: uppercase;">From</td></tr>
        <tr><td style="color: {c['text']}; font-size: 14px;">{escape_html(payload.name)}<br>
          <a href="mailto:{escape_html(payload.email)}" style="color: {c['primary']};">{escape_html(payload.email)}</a></td></tr>
        <tr><td style="padding-top: 24px; color: {c['muted']}; font-size: 11px; text-transform: uppercase;">Message</td></tr>
        <tr><td bgcolor="{c['surface']}" style="padding: 16px; color: {c['text']}; font-size: 14px; white-space: pre-wrap; border-left: 2px solid {c['primary']};">{escape_html(payload.message)}</td></tr>
        <tr><td style="padding-top: 24px; border-top: 1px solid {c['border']}; color: {c['muted']}; font-size: 11px;">IP: {escape_html(client_ip)}</td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


_HTML_RENDERERS = {
    "classic": _render_classic_html,
    "branded": _render_branded_html,
}


def render_contact_message(
    payload: ContactPayload,
    reference_id: str,
    client_ip: str,
    site_name: str,
    style: str = "classic",
    now: Optional[datetime] = None,
) -> RenderedMessage:
    when = now or datetime.now(timezone.utc)
    try:
        render_html = _HTML_RENDERERS[style]
    except KeyError:
        raise ValueError(f"Unknown template style: {style}") from None

    return RenderedMessage(
        reference_id=reference_id,
        name=payload.name,
        email=payload.email,
        message=payload.message,
        client_ip=client_ip,
        submitted_at=when,
        subject=f"[{site_name}] Contact from {_single_line(payload.name)}",
        text=_render_text(payload, reference_id, client_ip, site_name, when),
        html=render_html(payload, reference_id, client_ip, site_name, when),
    )
