"""
Email Service using Resend

Sends applicant notifications for the admission workflow. Called only from
the notification outbox job, never from inside a request.
"""

import asyncio
import logging
import os
from html import escape

import resend

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = os.getenv("RESEND_API_KEY")

# Configurations
EMAIL_FROM = os.getenv("EMAIL_FROM", "Admissions <noreply@admissions.dev>")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render(title: str, greeting_name: str | None, body: str) -> str:
    """Wrap a body fragment in the shared layout. ``body`` must already be escaped."""
    safe_name = escape(greeting_name) if greeting_name else "Applicant"
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #1a365d; margin-bottom: 24px; }}
            .button {{ display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .box {{ background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{escape(title)}</h1>
            <p>Hello {safe_name},</p>
            {body}
            <a href="{FRONTEND_URL}/applications" class="button">View Application</a>
            <div class="footer">
                <p>This is an automated message from the admissions office.</p>
            </div>
        </div>
    </body>
    </html>
    """


def _code_line(application_code: str | None) -> str:
    if not application_code:
        return ""
    return f"<p>Application number: <strong>{escape(application_code)}</strong></p>"


async def send_application_submitted(
    to_email: str,
    applicant_name: str | None,
    application_code: str | None,
) -> bool:
    """Confirm that an application was received."""
    body = f"""
            <p>We have received your application. Our admissions team will review it shortly.</p>
            {_code_line(application_code)}
    """
    return await send_email(
        to_email=to_email,
        subject="Your application has been submitted",
        html_content=_render("Application Received", applicant_name, body),
    )


async def send_application_resubmitted(
    to_email: str,
    applicant_name: str | None,
    application_code: str | None,
    resubmission_count: int,
) -> bool:
    """Confirm that a corrected application was received."""
    body = f"""
            <p>Thank you for addressing the feedback on your application.
            It is back in the review queue.</p>
            {_code_line(application_code)}
            <p>Resubmission number: {int(resubmission_count)}</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Your application has been resubmitted",
        html_content=_render("Application Resubmitted", applicant_name, body),
    )


async def send_application_approved(
    to_email: str,
    applicant_name: str | None,
    application_code: str | None,
) -> bool:
    """Tell the applicant their application was approved."""
    body = f"""
            <p>Congratulations! Your application has been <strong>approved</strong>.</p>
            {_code_line(application_code)}
            <p>We will be in touch about the next steps.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Your application has been approved",
        html_content=_render("Application Approved", applicant_name, body),
    )


async def send_application_rejected(
    to_email: str,
    applicant_name: str | None,
    application_code: str | None,
    reason_title: str,
    message: str,
    details: list[dict] | None = None,
) -> bool:
    """
    Tell the applicant what to fix.

    Args:
        to_email: Applicant email address
        applicant_name: Applicant full name, if known
        application_code: Application number, if assigned
        reason_title: Title of the rejection catalog reason
        message: Reviewer's explanation
        details: Structured feedback items (issue, document_type, action_required)
    """
    items = ""
    for detail in details or []:
        items += (
            f"<li><strong>{escape(detail.get('document_type', 'General'))}</strong>: "
            f"{escape(detail.get('issue', ''))}"
            f"<br><em>{escape(detail.get('action_required', ''))}</em></li>"
        )
    details_html = f"<ul>{items}</ul>" if items else ""

    body = f"""
            <p>Your application needs changes before it can be approved.</p>
            {_code_line(application_code)}
            <div class="box">
                <p><strong>{escape(reason_title)}</strong></p>
                <p>{escape(message)}</p>
                {details_html}
            </div>
            <p>Please correct the items above and resubmit your application.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Your application needs changes",
        html_content=_render("Action Required", applicant_name, body),
    )


async def send_application_cancelled(
    to_email: str,
    applicant_name: str | None,
    application_code: str | None,
) -> bool:
    body = f"""
            <p>Your application has been cancelled and will not be reviewed.</p>
            {_code_line(application_code)}
            <p>If this was a mistake, please contact the admissions office.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Your application has been cancelled",
        html_content=_render("Application Cancelled", applicant_name, body),
    )
