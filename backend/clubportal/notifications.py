"""Email notifications sent after club, event and account changes.

Every function here takes plain values rather than ORM objects: they run as
background tasks after the request's database session has been closed.
"""

import io
import json
import logging
from datetime import datetime
from html import escape
from typing import Iterable, Optional

import qrcode

from . import config
from .certificates import render_certificate_pdf
from .mailer import Attachment, EmailMessage, EmailResult, FanoutSummary, Mailer

logger = logging.getLogger(__name__)

Recipient = tuple[str, str]  # (email, name)


def _layout(heading: str, body: str, footer: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h1 style="color: #333; border-bottom: 2px solid #007bff; padding-bottom: 10px;">{heading}</h1>'
        f"{body}"
        '<hr style="border: 1px solid #eee; margin: 30px 0;">'
        f'<p style="color: #999; font-size: 12px;">{footer}</p>'
        "</div>"
    )


def _paragraphs(text: str) -> str:
    return escape(text).replace("\n", "<br>")


def _when(value: Optional[datetime]) -> str:
    return value.strftime("%d %B %Y, %I:%M %p") if value else "To be announced"


def render_qr_png(payload: dict) -> bytes:
    image = qrcode.make(json.dumps(payload, separators=(",", ":")))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def send_announcement_email(
    mailer: Mailer,
    club_name: str,
    title: str,
    content: str,
    recipients: Iterable[Recipient],
) -> FanoutSummary:
    heading = escape(club_name)
    body = (
        f'<h2 style="color: #555;">{escape(title)}</h2>'
        f'<div style="color: #666; line-height: 1.6; margin: 20px 0;">{_paragraphs(content)}</div>'
    )
    footer = (
        f"This is an official announcement from {escape(club_name)}. "
        "You received this because you are an approved member."
    )
    messages = [
        EmailMessage(
            to=email,
            subject=f"{club_name} Announcement: {title}",
            html=_layout(heading, body, footer),
            sender=mailer.sender_for(club_name),
        )
        for email, _name in recipients
    ]
    logger.info("announcement '%s' for %s: %d recipient(s)", title, club_name, len(messages))
    return mailer.send_many(messages)


def send_new_event_email(
    mailer: Mailer,
    club_name: str,
    event_title: str,
    event_description: str,
    event_date: Optional[datetime],
    venue: Optional[str],
    recipients: Iterable[Recipient],
) -> FanoutSummary:
    messages = []
    for email, name in recipients:
        body = (
            f"<p>Hi {escape(name)},</p>"
            f"<p>{escape(club_name)} has announced a new event.</p>"
            f'<h2 style="color: #555;">{escape(event_title)}</h2>'
            f"<p><strong>When:</strong> {_when(event_date)}</p>"
            f"<p><strong>Where:</strong> {escape(venue or 'To be announced')}</p>"
            f'<div style="color: #666; line-height: 1.6;">{_paragraphs(event_description)}</div>'
            f'<p><a href="{config.FRONTEND_URL}">Register on the club portal</a></p>'
        )
        messages.append(
            EmailMessage(
                to=email,
                subject=f"New Event: {event_title} - {club_name}",
                html=_layout(escape(club_name), body, "You are receiving this as a club member or mentor."),
            )
        )
    return mailer.send_many(messages)


def send_event_update_email(
    mailer: Mailer,
    club_name: str,
    event_title: str,
    subject: str,
    message: str,
    recipients: Iterable[Recipient],
) -> FanoutSummary:
    messages = [
        EmailMessage(
            to=email,
            subject=f"{event_title}: {subject}",
            html=_layout(
                escape(event_title),
                f"<p>Hi {escape(name)},</p><p>{_paragraphs(message)}</p>",
                f"You registered for {escape(event_title)} organised by {escape(club_name)}.",
            ),
            sender=mailer.sender_for(club_name),
        )
        for email, name in recipients
    ]
    return mailer.send_many(messages)


def send_event_registration_qr(
    mailer: Mailer,
    student_name: str,
    student_email: str,
    roll_number: str,
    event_id: int,
    event_title: str,
    event_date: Optional[datetime],
    qr_token: str,
) -> EmailResult:
    png = render_qr_png({"token": qr_token, "event_id": event_id})
    body = (
        f"<p>Hi {escape(student_name)} ({escape(roll_number)}),</p>"
        f"<p>You are registered for <strong>{escape(event_title)}</strong>.</p>"
        f"<p><strong>When:</strong> {_when(event_date)}</p>"
        "<p><strong>Important:</strong> keep the attached QR code and show it at the venue "
        "for entry. Each QR code can only be scanned once.</p>"
    )
    return mailer.send(
        EmailMessage(
            to=student_email,
            subject=f"Your Entry Pass for {event_title}",
            html=_layout("Event Registration Confirmed", body, "Club Portal"),
            attachments=[Attachment(filename=f"entry-pass-{event_id}.png", content=png)],
        )
    )


def send_certificate_emails(
    mailer: Mailer,
    club_name: str,
    event_title: str,
    event_date: Optional[datetime],
    certificates: Iterable[dict],
) -> FanoutSummary:
    """Email each recipient a PDF certificate.

    ``certificates`` items carry student_name, student_email, certificate_number
    and optionally branch and year.
    """
    messages = []
    for cert in certificates:
        pdf = render_certificate_pdf(
            student_name=cert["student_name"],
            event_title=event_title,
            club_name=club_name,
            certificate_number=cert["certificate_number"],
            event_date=event_date,
            branch=cert.get("branch"),
            year=cert.get("year"),
        )
        body = (
            f"<p>Dear {escape(cert['student_name'])},</p>"
            f"<p>Thank you for participating in <strong>{escape(event_title)}</strong>. "
            "Your certificate of participation is attached.</p>"
            f"<p>Certificate No. {escape(cert['certificate_number'])}</p>"
        )
        messages.append(
            EmailMessage(
                to=cert["student_email"],
                subject=f"Your Certificate for {event_title}",
                html=_layout(escape(club_name), body, "Club Portal certificates"),
                sender=mailer.sender_for(club_name),
                attachments=[
                    Attachment(filename=f"{cert['certificate_number']}.pdf", content=pdf)
                ],
            )
        )
    return mailer.send_many(messages)


def send_welcome_email(
    mailer: Mailer,
    student_name: str,
    student_email: str,
    club_name: str,
    roll_number: Optional[str],
    default_password: Optional[str],
) -> EmailResult:
    body = (
        f"<p>Hi {escape(student_name)},</p>"
        f"<p>Your registration to <strong>{escape(club_name)}</strong> has been approved. Welcome aboard!</p>"
    )
    if roll_number and default_password:
        body += (
            "<p>You can sign in to the student dashboard with:</p>"
            f"<p><strong>Roll number:</strong> {escape(roll_number)}<br>"
            f"<strong>Password:</strong> {escape(default_password)}</p>"
            "<p>Please change your password after your first login.</p>"
        )
    return mailer.send(
        EmailMessage(
            to=student_email,
            subject=f"Welcome to {club_name}!",
            html=_layout(escape(club_name), body, "Club Portal"),
            sender=mailer.sender_for(club_name),
        )
    )


def send_password_reset_email(
    mailer: Mailer, student_email: str, roll_number: str, reset_token: str
) -> EmailResult:
    reset_url = f"{config.FRONTEND_URL}/reset-password?token={reset_token}"
    body = (
        "<p>Hello,</p>"
        "<p>We received a request to reset the password for your club portal account "
        f"(Roll Number: <strong>{escape(roll_number)}</strong>).</p>"
        f'<p><a href="{reset_url}">Reset Password</a></p>'
        f"<p>This link will expire in {config.RESET_TOKEN_TTL_MINUTES} minutes.</p>"
        "<p>If you didn't request this password reset, you can safely ignore this email.</p>"
    )
    return mailer.send(
        EmailMessage(
            to=student_email,
            subject="Reset Your Password - Club Portal",
            html=_layout("Password Reset Request", body, "Club Portal"),
        )
    )
