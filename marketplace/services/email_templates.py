"""
Email templates. Each template renders to a subject, a plain-text body and
an HTML body; the mailer sends the last two as multipart/alternative.
"""

from dataclasses import dataclass
from html import escape
from typing import Any, Callable, Dict, Mapping


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    plain_body: str
    html_body: str


def _wrap_html(title: str, inner: str) -> str:
    return (
        "<!doctype html><html><head>"
        '<meta name="viewport" content="width=device-width" />'
        '<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />'
        f"<title>{escape(title)}</title></head><body>{inner}</body></html>"
    )


def user_welcome(data: Mapping[str, Any]) -> RenderedEmail:
    name = str(data.get("first_name") or "there")
    subject = "Welcome to Marketplace!"
    plain = (
        f"Hi {name},\n\n"
        "Thanks for signing up. We're excited to have you on board!\n\n"
        f"For future reference, your user ID number is {data['user_id']}.\n\n"
        "Thanks,\n\nThe Marketplace Team\n"
    )
    html = _wrap_html(
        subject,
        f"<p>Hi {escape(name)},</p>"
        "<p>Thanks for signing up. We're excited to have you on board!</p>"
        f"<p>For future reference, your user ID number is {int(data['user_id'])}.</p>"
        "<p>Thanks,</p><p>The Marketplace Team</p>",
    )
    return RenderedEmail(subject, plain, html)


def email_verification(data: Mapping[str, Any]) -> RenderedEmail:
    token = str(data["token"])
    minutes = int(data.get("ttl_minutes", 5))
    subject = "Verify your email address"
    plain = (
        "Hi,\n\n"
        f"Your verification code is:\n\n    {token}\n\n"
        f"The code expires in {minutes} minutes. Send it to "
        "POST /api/v1/auth/verify-token as {\"token\": \"...\"}.\n\n"
        "If you did not request this, you can ignore this email.\n\n"
        "Thanks,\n\nThe Marketplace Team\n"
    )
    html = _wrap_html(
        subject,
        "<p>Hi,</p>"
        f"<p>Your verification code is:</p><pre><code>{escape(token)}</code></pre>"
        f"<p>The code expires in {minutes} minutes.</p>"
        "<p>If you did not request this, you can ignore this email.</p>"
        "<p>Thanks,</p><p>The Marketplace Team</p>",
    )
    return RenderedEmail(subject, plain, html)


TEMPLATES: Dict[str, Callable[[Mapping[str, Any]], RenderedEmail]] = {
    "user_welcome": user_welcome,
    "email_verification": email_verification,
}


def render(template: str, data: Mapping[str, Any]) -> RenderedEmail:
    try:
        renderer = TEMPLATES[template]
    except KeyError:
        raise ValueError(f"unknown email template {template!r}") from None
    return renderer(data)
