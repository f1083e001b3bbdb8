"""
Email templates.

Each builder returns an EmailTemplate; the send_* helpers pair a template
with send_email. Values interpolated into HTML are escaped.
"""
from dataclasses import dataclass
from html import escape
from typing import Optional

from academy.core.config import settings
from academy.features.email.sender import send_email

BRAND = "Viral Academy"


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html: str
    text: str


def _layout(heading: str, body_html: str, cta_label: Optional[str] = None, cta_url: Optional[str] = None) -> str:
    button = ""
    if cta_label and cta_url:
        button = (
            f'<p style="text-align:center;margin:32px 0;">'
            f'<a href="{escape(cta_url, quote=True)}" style="background:#d4ff00;color:#0a0a0a;'
            f'padding:12px 24px;border-radius:8px;text-decoration:none;font-weight:600;">{escape(cta_label)}</a></p>'
        )
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8"></head>'
        '<body style="font-family:-apple-system,Segoe UI,Roboto,sans-serif;background:#0a0a0a;padding:20px;">'
        '<div style="max-width:600px;margin:0 auto;background:#171717;padding:32px;border-radius:12px;color:#ffffff;">'
        f'<h1 style="color:#d4ff00;font-size:24px;margin:0 0 24px;">{BRAND}</h1>'
        f'<h2 style="font-size:20px;">{escape(heading)}</h2>'
        f'<div style="color:#a1a1aa;">{body_html}</div>'
        f'{button}'
        '</div></body></html>'
    )


def _url(path: str) -> str:
    return settings.APP_URL.rstrip("/") + path


def welcome(name: str) -> EmailTemplate:
    url = _url("/app/dashboard")
    return EmailTemplate(
        subject=f"Welcome to {BRAND}!",
        html=_layout(
            f"Welcome, {name}!",
            "<p>Your account is ready. Activate your membership to unlock every course, live session and the community.</p>",
            "Go to my dashboard",
            url,
        ),
        text=f"Welcome, {name}! Your account is ready. Visit {url} to get started.",
    )


def subscription_activated(name: str) -> EmailTemplate:
    url = _url("/app/cursos")
    return EmailTemplate(
        subject="Your membership is active!",
        html=_layout(
            f"Thanks, {name}!",
            "<p>Your membership is active. You now have full access to courses, lives and the community.</p>",
            "Start learning",
            url,
        ),
        text=f"Thanks, {name}! Your membership is active. Start learning at {url}",
    )


def payment_failed(name: str) -> EmailTemplate:
    url = _url("/app/membresia")
    return EmailTemplate(
        subject="Payment problem - action required",
        html=_layout(
            f"Hi {name},",
            "<p>We could not process your latest payment. Update your payment method to keep your access.</p>",
            "Update payment method",
            url,
        ),
        text=f"Hi {name}, we could not process your latest payment. Update it at {url}",
    )


def live_reminder(name: str, live_title: str, live_date: str, meeting_url: str) -> EmailTemplate:
    return EmailTemplate(
        subject=f"Reminder: {live_title} - Tomorrow",
        html=_layout(
            f"Hi {name},",
            f"<p>Don't miss <strong>{escape(live_title)}</strong> on {escape(live_date)}.</p>",
            "Join the live",
            meeting_url,
        ),
        text=f"Hi {name}, don't miss {live_title} on {live_date}. Join: {meeting_url}",
    )


def course_completed(name: str, course_name: str, certificate_url: str) -> EmailTemplate:
    return EmailTemplate(
        subject=f"Congratulations! You completed {course_name}",
        html=_layout(
            f"Well done, {name}!",
            f"<p>You completed <strong>{escape(course_name)}</strong>. Your certificate is ready.</p>",
            "View certificate",
            certificate_url,
        ),
        text=f"Well done, {name}! You completed {course_name}. Certificate: {certificate_url}",
    )


def admin_message(name: str, subject: str, message: str) -> EmailTemplate:
    return EmailTemplate(
        subject=subject,
        html=_layout(
            f"Hi {name},",
            f'<div style="white-space:pre-wrap;">{escape(message)}</div>',
        ),
        text=f"Hi {name},\n\n{message}",
    )


def _deliver(to: str, template: EmailTemplate) -> Optional[str]:
    return send_email(to, template.subject, template.html, template.text)


def send_welcome_email(email: str, name: str) -> Optional[str]:
    return _deliver(email, welcome(name))


def send_subscription_activated_email(email: str, name: str) -> Optional[str]:
    return _deliver(email, subscription_activated(name))


def send_payment_failed_email(email: str, name: str) -> Optional[str]:
    return _deliver(email, payment_failed(name))


def send_live_reminder_email(email: str, name: str, live_title: str, live_date: str, meeting_url: str) -> Optional[str]:
    return _deliver(email, live_reminder(name, live_title, live_date, meeting_url))


def send_course_completed_email(email: str, name: str, course_name: str, certificate_url: str) -> Optional[str]:
    return _deliver(email, course_completed(name, course_name, certificate_url))


def send_admin_message_email(email: str, name: str, subject: str, message: str) -> Optional[str]:
    return _deliver(email, admin_message(name, subject, message))
