"""
Email Service using Resend

Handles sending workshop reminders, payment outcome notifications and
new-enrollment notices for trainers.
"""

import asyncio
import logging
from html import escape

import resend

from innoaccess.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_BASE_STYLES = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1e3a8a; margin-bottom: 24px; }
            .button { display: inline-block; background-color: #2563eb; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""

_NOTICE_STYLE = ".notice { background-color: #fef3c7; border: 1px solid #f59e0b; padding: 16px; border-radius: 8px; margin: 16px 0; }"
_SUCCESS_STYLE = ".success { background-color: #dcfce7; border: 1px solid #16a34a; padding: 16px; border-radius: 8px; margin: 16px 0; }"
_REASON_STYLE = ".reason-box { background-color: #fef2f2; border: 1px solid #fecaca; padding: 16px; border-radius: 8px; margin: 16px 0; }"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Never raises: delivery problems are reported through the return value.

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
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_workshop_reminder(
    to_email: str,
    participant_name: str,
    workshop_title: str,
    start_time_display: str,
    meeting_link: str,
) -> bool:
    """Send the 'starting in 10 minutes' reminder for a live workshop."""
    safe_name = escape(participant_name or "there")
    safe_title = escape(workshop_title)
    safe_start = escape(start_time_display)
    safe_link = escape(meeting_link, quote=True)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLES}{_NOTICE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Your workshop starts soon</h1>

            <p>Hello {safe_name},</p>

            <div class="notice">
                <strong>{safe_title}</strong> starts in about 10 minutes.
            </div>

            <p><strong>Start time:</strong> {safe_start}</p>

            <a href="{safe_link}" class="button">Join Workshop</a>

            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{safe_link}</p>

            <div class="footer">
                <p>You are receiving this because you are enrolled in this workshop.</p>
                <p>InnoAccess</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f'Your workshop "{workshop_title}" starts in 10 minutes!',
        html_content=html_content,
    )


async def send_payment_confirmed(
    to_email: str,
    student_name: str,
    course_title: str,
    course_id: str,
) -> bool:
    """Send enrollment confirmation after a successful payment."""
    safe_name = escape(student_name or "there")
    safe_title = escape(course_title)

    course_url = f"{settings.frontend_url}/courses/{course_id}"
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLES}{_SUCCESS_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Enrollment Confirmed</h1>

            <p>Dear {safe_name},</p>

            <div class="success">
                Your payment for <strong>{safe_title}</strong> was received. You now have full access to the course.
            </div>

            <a href="{course_url}" class="button">Start Learning Now</a>

            <div class="footer">
                <p>This is an automated message from InnoAccess.</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Payment Approved - Welcome to {course_title}!",
        html_content=html_content,
    )


async def send_new_enrollment_to_trainer(
    to_email: str,
    trainer_name: str,
    student_name: str,
    course_title: str,
    course_id: str,
) -> bool:
    """Tell a trainer that a student enrolled in their course after paying."""
    safe_trainer = escape(trainer_name or "there")
    safe_student = escape(student_name or "A new student")
    safe_title = escape(course_title)

    course_url = f"{settings.frontend_url}/trainer/courses/{course_id}"
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLES}{_SUCCESS_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">New Student Enrolled</h1>

            <p>Hello {safe_trainer},</p>

            <div class="success">
                <strong>{safe_student}</strong> has enrolled in your course <strong>{safe_title}</strong>.
            </div>

            <a href="{course_url}" class="button">View Course</a>

            <div class="footer">
                <p>This is an automated message from InnoAccess.</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"New student enrolled in {course_title}",
        html_content=html_content,
    )


async def send_payment_rejected(
    to_email: str,
    student_name: str,
    course_title: str,
    reason: str,
) -> bool:
    """Send notification that a payment was rejected."""
    safe_name = escape(student_name or "there")
    safe_title = escape(course_title)
    safe_reason = escape(reason)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLES}{_REASON_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Payment Rejected</h1>

            <p>Dear {safe_name},</p>

            <p>Your payment for <strong>{safe_title}</strong> could not be accepted.</p>

            <div class="reason-box">
                <p><strong>Reason:</strong></p>
                <p>{safe_reason}</p>
            </div>

            <p>You can submit a new payment at any time. If you believe this is an error, reply to this email.</p>

            <div class="footer">
                <p>This is an automated message from InnoAccess.</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Payment Rejected - {course_title}",
        html_content=html_content,
    )
