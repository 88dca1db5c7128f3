import smtplib
from html import escape
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from core.config import settings
from utils.logger import get_logger

logger = get_logger(__name__)

APP_NAME = "SMS Number Store"


def send_email(to_email: str, subject: str, body: str):
    """Send an HTML email over STARTTLS. Always scheduled as a background task."""
    if settings.ENV == "testing":
        logger.info(
            "[TEST MODE] Email skipped",
            extra={"recipient": to_email, "subject": subject}
        )
        return

    logger.debug(
        "Attempting to send email",
        extra={"recipient": to_email, "subject": subject}
    )

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.MAIL_FROM
    message["To"] = to_email
    message.attach(MIMEText(body, "html"))

    try:
        with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
            server.starttls()
            server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, message.as_string())

        logger.info(
            "Email sent successfully",
            extra={"recipient": to_email, "subject": subject}
        )

    except smtplib.SMTPException as e:
        logger.error(
            f"Failed to send email: {str(e)}",
            extra={
                "recipient": to_email,
                "subject": subject,
                "error_type": type(e).__name__
            },
            exc_info=True
        )
        raise


def _layout(title: str, content: str) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">{title}</h2>
            {content}
            <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
            <p style="color: #999; font-size: 12px;">{APP_NAME}</p>
        </div>
    </body>
    </html>
    """


def _button(url: str, label: str) -> str:
    return f"""
    <a href="{url}"
    style="display: inline-block; padding: 12px 24px; background-color: #4CAF50;
            color: white; text-decoration: none; border-radius: 4px; margin: 10px 0;">
        {label}
    </a>
    <p style="color: #999; font-size: 12px;">Or paste this link into your browser: {url}</p>
    """


def verification_email(username: str, token: str) -> tuple[str, str]:
    url = f"{settings.BASE_URL}/auth/verify-email?token={token}"
    body = _layout(
        f"Welcome to {APP_NAME}!",
        f"""
        <p>Hi {escape(username)}, please confirm your email address to activate your account.</p>
        {_button(url, "Verify Email")}
        <p>This link expires in {settings.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.</p>
        <p>If you didn't create an account, please ignore this email.</p>
        """
    )
    return f"Verify Your Email - {APP_NAME}", body


def password_reset_email(token: str) -> tuple[str, str]:
    url = f"{settings.BASE_URL}/reset-password?token={token}"
    body = _layout(
        "Password Reset Request",
        f"""
        <p>A password reset was requested for your account.</p>
        {_button(url, "Reset Password")}
        <p>This link expires in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.</p>
        <p>If this was not you, you can ignore this email; your password stays unchanged.</p>
        """
    )
    return f"Reset Your Password - {APP_NAME}", body


def ticket_notification_email(ticket, username: str, message: str, is_reply: bool = False) -> tuple[str, str]:
    heading = "New reply on support ticket" if is_reply else "New support ticket"
    body = _layout(
        heading,
        f"""
        <p><strong>Ticket #{ticket.id}:</strong> {escape(ticket.title)}</p>
        <p><strong>From:</strong> {escape(username)}</p>
        <p><strong>Category:</strong> {ticket.category} &middot; <strong>Priority:</strong> {ticket.priority}</p>
        <blockquote style="border-left: 3px solid #eee; padding-left: 10px;">{escape(message)}</blockquote>
        """
    )
    return f"[Ticket #{ticket.id}] {ticket.title}", body
