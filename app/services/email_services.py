import logging
import random
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import settings
from app.models.otp import OTP_TTL_MINUTES

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    pass


def generate_otp() -> str:
    return str(random.randint(100000, 999999))


OTP_TEMPLATE = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #333;">
    <h2 style="color: #4f46e5;">GymSync email verification</h2>
    <p>Hello {name}!</p>
    <p>Use the code below to complete your registration:</p>
    <p style="font-size: 32px; font-weight: bold; letter-spacing: 5px; color: #4f46e5;">{otp}</p>
    <ul>
      <li>This code will expire in {ttl} minutes</li>
      <li>Do not share this code with anyone</li>
      <li>If you didn't request this verification, please ignore this email</li>
    </ul>
    <p>Best regards,<br>The GymSync Team</p>
  </body>
</html>
"""

WELCOME_TEMPLATE = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #333;">
    <h2 style="color: #4f46e5;">Welcome to GymSync!</h2>
    <p>Hello {name}!</p>
    <p>Your email has been verified and your GymSync account is now active.</p>
    <ul>
      <li>Complete your fitness profile</li>
      <li>Choose your subscription plan</li>
      <li>Connect with our expert trainers</li>
    </ul>
    <p>Best regards,<br>The GymSync Team</p>
  </body>
</html>
"""


def send_email(to_email: str, subject: str, html_body: str) -> None:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"GymSync <{settings.FROM_EMAIL}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
            server.starttls()
            if settings.SMTP_USER and settings.SMTP_PASS:
                server.login(settings.SMTP_USER, settings.SMTP_PASS)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send '%s' email to %s: %s", subject, to_email, exc)
        raise EmailDeliveryError(str(exc)) from exc

    logger.info("Sent '%s' email to %s", subject, to_email)


def send_otp_email(to_email: str, otp: str, name: str) -> None:
    send_email(
        to_email,
        "GymSync - Email Verification Code",
        OTP_TEMPLATE.format(name=name, otp=otp, ttl=OTP_TTL_MINUTES),
    )


def send_welcome_email(to_email: str, name: str) -> None:
    send_email(to_email, "Welcome to GymSync!", WELCOME_TEMPLATE.format(name=name))
