"""Email bodies for account lifecycle notifications.

Every template renders an HTML body plus a plain-text alternative. Links are
built from the LinkConfig handed in by the caller.
"""

import enum
from dataclasses import dataclass
from html import escape
from typing import Any

from propertyhub.config import Settings

BRAND = "PropertyHub"


class TemplateKind(enum.Enum):
    VERIFY_ACCOUNT = "verify_account"
    RESEND_VERIFICATION = "resend_verification"
    ACCOUNT_VERIFIED = "account_verified"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGED = "password_changed"
    CONFIRM_EDIT = "confirm_edit"
    CONFIRM_DELETE = "confirm_delete"


@dataclass(frozen=True)
class LinkConfig:
    frontend_url: str
    backend_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "LinkConfig":
        return cls(
            frontend_url=settings.frontend_url.rstrip("/"),
            backend_url=settings.base_url.rstrip("/"),
        )

    @property
    def login_url(self) -> str:
        return f"{self.frontend_url}/login"

    @property
    def verify_url(self) -> str:
        return f"{self.frontend_url}/verify"

    @property
    def reset_url(self) -> str:
        return f"{self.frontend_url}/reset-password"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


def _page(title: str, accent: str, inner: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        '<html><head><meta charset="UTF-8"></head>\n'
        '<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">\n'
        '<div style="max-width: 600px; margin: 0 auto; padding: 20px; '
        'border: 1px solid #ddd; border-radius: 10px;">\n'
        f'<h2 style="color: {accent};">{escape(title)}</h2>\n'
        f"{inner}\n"
        "</div></body></html>"
    )


def _code_block(code: str, accent: str) -> str:
    return (
        '<div style="text-align: center; margin: 30px 0;">'
        f'<h1 style="color: {accent}; letter-spacing: 8px;">{escape(code)}</h1>'
        "</div>"
    )


def _token_block(token: str, accent: str) -> str:
    return (
        '<div style="text-align: center; margin: 30px 0;">'
        f'<code style="font-size: 20px; font-weight: bold; color: {accent}; '
        f'user-select: all;">{escape(token)}</code>'
        "</div>"
    )


def _button(href: str, label: str) -> str:
    return (
        '<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(href, quote=True)}" style="background: #2E86C1; color: white; '
        'padding: 12px 30px; text-decoration: none; border-radius: 6px;">'
        f"{escape(label)}</a></div>"
    )


def _verification(params: dict[str, Any], links: LinkConfig, subject: str, intro: str) -> RenderedEmail:
    name, code, minutes = params["name"], params["code"], params["expires_minutes"]
    html = _page(
        subject,
        "#2E86C1",
        f"<p>Hi {escape(name)},</p>"
        f"<p>{escape(intro)} Use this verification code:</p>"
        f"{_code_block(code, '#2E86C1')}"
        f"<p>Enter it at {escape(links.verify_url)}. The code expires in {minutes} minutes.</p>"
        "<p>If you didn't create this account, ignore this email.</p>",
    )
    text = (
        f"{BRAND} - {subject}\n\n"
        f"Hi {name},\n\n"
        f"{intro} Use this verification code:\n\n"
        f"CODE: {code}\n\n"
        f"Enter it at {links.verify_url}. The code expires in {minutes} minutes.\n\n"
        "If you didn't create this account, ignore this email.\n"
    )
    return RenderedEmail(subject=subject, html=html, text=text)


def _verify_account(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    return _verification(
        params, links, f"Verify your {BRAND} account", f"Thanks for signing up for {BRAND}."
    )


def _resend_verification(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    return _verification(
        params, links, f"Your new {BRAND} verification code", "You asked for a new code."
    )


def _account_verified(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    subject = f"Your {BRAND} account is verified"
    name = params["name"]
    html = _page(
        subject,
        "#27AE60",
        f"<p>Hi {escape(name)},</p>"
        "<p>Your email is confirmed and your account is active. You can log in now.</p>"
        f"{_button(links.login_url, 'Go to ' + BRAND)}",
    )
    text = (
        f"{BRAND} - {subject}\n\n"
        f"Hi {name},\n\n"
        "Your email is confirmed and your account is active. You can log in now:\n"
        f"{links.login_url}\n"
    )
    return RenderedEmail(subject=subject, html=html, text=text)


def _password_reset(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    subject = f"Reset your {BRAND} password"
    name, code, minutes = params["name"], params["code"], params["expires_minutes"]
    html = _page(
        subject,
        "#E67E22",
        f"<p>Hi {escape(name)},</p>"
        "<p>We received a request to reset your password. Use this code:</p>"
        f"{_code_block(code, '#E67E22')}"
        f"<p>Enter it at {escape(links.reset_url)}. The code expires in {minutes} minutes.</p>"
        "<p>If you didn't ask for this, ignore this email.</p>",
    )
    text = (
        f"{BRAND} - {subject}\n\n"
        f"Hi {name},\n\n"
        "We received a request to reset your password. Use this code:\n\n"
        f"CODE: {code}\n\n"
        f"Enter it at {links.reset_url}. The code expires in {minutes} minutes.\n\n"
        "If you didn't ask for this, ignore this email.\n"
    )
    return RenderedEmail(subject=subject, html=html, text=text)


def _password_changed(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    subject = f"Your {BRAND} password was changed"
    name, changed_at = params["name"], params["changed_at"]
    html = _page(
        subject,
        "#27AE60",
        f"<p>Hi {escape(name)},</p>"
        f"<p>Your password was changed on {escape(changed_at)} (UTC).</p>"
        f"{_button(links.login_url, 'Log in')}"
        "<p><strong>Security notice:</strong> if you didn't make this change, "
        "your account may be compromised. Contact support right away.</p>",
    )
    text = (
        f"{BRAND} - {subject}\n\n"
        f"Hi {name},\n\n"
        f"Your password was changed on {changed_at} (UTC).\n"
        f"Log in: {links.login_url}\n\n"
        "SECURITY NOTICE: if you didn't make this change, your account may be "
        "compromised. Contact support right away.\n"
    )
    return RenderedEmail(subject=subject, html=html, text=text)


def _confirm_edit(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    subject = f"Confirm your {BRAND} profile changes"
    name, token, minutes = params["name"], params["token"], params["expires_minutes"]
    html = _page(
        subject,
        "#F39C12",
        f"<p>Hi {escape(name)},</p>"
        "<p>You asked to edit your account. Copy this token to confirm the changes:</p>"
        f"{_token_block(token, '#F39C12')}"
        f"<p>The token expires in {minutes} minutes.</p>"
        "<p>If you didn't ask to edit your account, ignore this email.</p>",
    )
    text = (
        f"{BRAND} - {subject}\n\n"
        f"Hi {name},\n\n"
        "You asked to edit your account. Copy this token to confirm the changes:\n\n"
        f"TOKEN: {token}\n\n"
        f"The token expires in {minutes} minutes.\n"
    )
    return RenderedEmail(subject=subject, html=html, text=text)


def _confirm_delete(params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    subject = f"Confirm deleting your {BRAND} account"
    name, token, minutes = params["name"], params["token"], params["expires_minutes"]
    html = _page(
        subject,
        "#C0392B",
        f"<p>Hi {escape(name)},</p>"
        "<p>You asked to delete your account. This action is <strong>irreversible</strong>.</p>"
        "<p>If you're sure, copy this token:</p>"
        f"{_token_block(token, '#C0392B')}"
        f"<p>The token expires in {minutes} minutes.</p>"
        "<p>If you didn't ask for this, ignore this email and change your password.</p>",
    )
    text = (
        f"{BRAND} - {subject}\n\n"
        f"Hi {name},\n\n"
        "You asked to delete your account. This action is IRREVERSIBLE.\n"
        "If you're sure, copy this token:\n\n"
        f"TOKEN: {token}\n\n"
        f"The token expires in {minutes} minutes.\n"
        "If you didn't ask for this, ignore this email and change your password.\n"
    )
    return RenderedEmail(subject=subject, html=html, text=text)


_RENDERERS = {
    TemplateKind.VERIFY_ACCOUNT: _verify_account,
    TemplateKind.RESEND_VERIFICATION: _resend_verification,
    TemplateKind.ACCOUNT_VERIFIED: _account_verified,
    TemplateKind.PASSWORD_RESET: _password_reset,
    TemplateKind.PASSWORD_CHANGED: _password_changed,
    TemplateKind.CONFIRM_EDIT: _confirm_edit,
    TemplateKind.CONFIRM_DELETE: _confirm_delete,
}


def render(kind: TemplateKind, params: dict[str, Any], links: LinkConfig) -> RenderedEmail:
    return _RENDERERS[kind](params, links)
