"""
MJML Email Templates
Booking and waitlist emails using MJML for responsive, cross-client compatibility
"""

from typing import Optional

THEME = {
    "primary": "#2563eb",
    "primary_dark": "#1d4ed8",
    "primary_light": "#dbeafe",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you booked or requested an appointment.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _appointment_details(professional_name: str, appointment_date: str, start_time: str, end_time: str) -> str:
    return f"""
    <mj-text padding="8px 0 0 0">
      <strong>With:</strong> {professional_name}<br/>
      <strong>Date:</strong> {appointment_date}<br/>
      <strong>Time:</strong> {start_time} - {end_time}
    </mj-text>
    """


def appointment_booked_template(
    client_name: str,
    professional_name: str,
    appointment_date: str,
    start_time: str,
    end_time: str,
    cancel_url: Optional[str] = None,
) -> str:
    """Booking confirmation sent to the client"""
    content = f"""
    <mj-text>Hi {client_name},</mj-text>
    <mj-text>Your appointment is booked.</mj-text>
    {_appointment_details(professional_name, appointment_date, start_time, end_time)}
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Can't make it? Use the button below to cancel so someone else can take the slot.
    </mj-text>
    """
    return get_base_template(
        title="Appointment Confirmed",
        preview_text=f"{appointment_date} at {start_time} with {professional_name}",
        content_sections=content,
        cta_url=cancel_url,
        cta_label="Cancel Appointment" if cancel_url else None,
    )


def appointment_cancelled_template(
    client_name: str,
    professional_name: str,
    appointment_date: str,
    start_time: str,
    cancelled_by: str,
) -> str:
    """Cancellation notice sent to the client"""
    who = "at your request" if cancelled_by == "client" else f"by {professional_name}"
    content = f"""
    <mj-text>Hi {client_name},</mj-text>
    <mj-text>
      Your appointment on <strong>{appointment_date}</strong> at <strong>{start_time}</strong>
      was cancelled {who}.
    </mj-text>
    """
    return get_base_template(
        title="Appointment Cancelled",
        preview_text=f"Your appointment on {appointment_date} was cancelled",
        content_sections=content,
    )


def waitlist_joined_template(client_name: str, professional_name: str, preferred_date: str) -> str:
    content = f"""
    <mj-text>Hi {client_name},</mj-text>
    <mj-text>
      You're on the waitlist for <strong>{professional_name}</strong> around
      <strong>{preferred_date}</strong>. We'll email you as soon as a matching slot opens up.
    </mj-text>
    """
    return get_base_template(
        title="You're on the Waitlist",
        preview_text=f"Waitlist request for {preferred_date} received",
        content_sections=content,
    )


def waitlist_slot_available_template(
    client_name: str,
    professional_name: str,
    appointment_date: str,
    start_time: str,
    end_time: str,
    expires_at: str,
    claim_url: str,
) -> str:
    """Priority offer for a freed slot"""
    content = f"""
    <mj-text>Hi {client_name},</mj-text>
    <mj-text>A slot just opened up and you have priority access.</mj-text>
    {_appointment_details(professional_name, appointment_date, start_time, end_time)}
    <mj-text color="{THEME['warning']}" font-weight="600">
      Your priority window ends {expires_at}.
    </mj-text>
    """
    return get_base_template(
        title="A Slot Is Available",
        preview_text=f"Priority access to {appointment_date} at {start_time}",
        content_sections=content,
        cta_url=claim_url,
        cta_label="Claim This Slot",
    )


def waitlist_claim_expired_template(client_name: str, appointment_date: str, start_time: str) -> str:
    content = f"""
    <mj-text>Hi {client_name},</mj-text>
    <mj-text>
      Your priority window for <strong>{appointment_date}</strong> at <strong>{start_time}</strong>
      has ended and the slot has been released.
    </mj-text>
    """
    return get_base_template(
        title="Priority Window Expired",
        preview_text="Your waitlist priority window has ended",
        content_sections=content,
    )
