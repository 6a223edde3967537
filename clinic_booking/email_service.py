"""
Email Service using Resend
Provides booking emails using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import (
    appointment_booked_template,
    appointment_cancelled_template,
    waitlist_claim_expired_template,
    waitlist_joined_template,
    waitlist_slot_available_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    html_content = compile_mjml_to_html(mjml_content)

    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise Exception("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend: {subject}")
        response = resend.Emails.send(
            {
                "from": sender,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


# ============================================
# Booking and waitlist emails
# ============================================


async def send_appointment_booked_email(
    to: str,
    client_name: str,
    professional_name: str,
    appointment_date: str,
    start_time: str,
    end_time: str,
    cancellation_token: Optional[str] = None,
) -> dict:
    cancel_url = f"{FRONTEND_URL}/appointments/cancel/{cancellation_token}" if cancellation_token else None
    return await send_email(
        to=to,
        subject=f"Appointment confirmed for {appointment_date} at {start_time}",
        mjml_content=appointment_booked_template(
            client_name, professional_name, appointment_date, start_time, end_time, cancel_url
        ),
    )


async def send_appointment_cancelled_email(
    to: str,
    client_name: str,
    professional_name: str,
    appointment_date: str,
    start_time: str,
    cancelled_by: str,
) -> dict:
    return await send_email(
        to=to,
        subject="Your appointment was cancelled",
        mjml_content=appointment_cancelled_template(
            client_name, professional_name, appointment_date, start_time, cancelled_by
        ),
    )


async def send_waitlist_joined_email(
    to: str, client_name: str, professional_name: str, preferred_date: str
) -> dict:
    return await send_email(
        to=to,
        subject="You're on the waitlist",
        mjml_content=waitlist_joined_template(client_name, professional_name, preferred_date),
    )


async def send_waitlist_slot_available_email(
    to: str,
    client_name: str,
    professional_name: str,
    appointment_date: str,
    start_time: str,
    end_time: str,
    expires_at: str,
    token: str,
) -> dict:
    """Priority offer with the claim link"""
    claim_url = f"{FRONTEND_URL}/waitlist/priority/{token}"
    return await send_email(
        to=to,
        subject="A slot just opened up for you",
        mjml_content=waitlist_slot_available_template(
            client_name, professional_name, appointment_date, start_time, end_time, expires_at, claim_url
        ),
    )


async def send_waitlist_claim_expired_email(
    to: str, client_name: str, appointment_date: str, start_time: str
) -> dict:
    return await send_email(
        to=to,
        subject="Your priority window has ended",
        mjml_content=waitlist_claim_expired_template(client_name, appointment_date, start_time),
    )
