import logging

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from taskboard.core.config import settings

logger = logging.getLogger(__name__)


def send_invitation_email(to_email: str, project_name: str, inviter_name: str):
    """Send project invitation email using SendGrid"""
    if not settings.sendgrid_api_key or not settings.sendgrid_from_email:
        logger.info(f"SendGrid not configured, skipping invitation email to {to_email}")
        return

    try:
        subject = f"You have been invited to {project_name}"
        html_content = f"""
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6;">
                <p><b>{inviter_name}</b> invited you to join the project:</p>
                <h2 style="color: #2c3e50; font-size: 24px; text-align: center;">
                    {project_name}
                </h2>
                <p>Sign in to accept or decline the invitation.</p>
                <br>
                <p>If you were not expecting this invitation, please ignore this email.</p>
            </body>
        </html>
        """

        message = Mail(
            from_email=settings.sendgrid_from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )

        sg = SendGridAPIClient(settings.sendgrid_api_key)
        response = sg.send(message)
        logger.info(f"Invitation email sent to {to_email}, status: {response.status_code}")

    except Exception:
        logger.exception(f"Failed to send invitation email to {to_email}")
