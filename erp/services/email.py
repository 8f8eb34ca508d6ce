import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from erp.app.config import settings
from erp.app.db.models.models_v1 import LoanInstallment

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self):
        self.smtp_server = settings.smtp_server
        self.smtp_port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.sender = settings.email_from

    def send_payment_reminder(
        self,
        recipient_email: Optional[str],
        installment: LoanInstallment,
        borrower_name: str,
    ) -> bool:
        """Reminder for an installment falling due soon. Never raises."""
        if not recipient_email:
            logger.warning(
                "No email address for borrower, reminder skipped",
                extra={"ctx": {"installment_id": installment.id, "borrower": borrower_name}},
            )
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = f"Payment reminder - installment due {installment.due_date.isoformat()}"
            msg["From"] = self.sender
            msg["To"] = recipient_email

            msg.attach(MIMEText(self._reminder_text(installment, borrower_name), "plain"))
            msg.attach(MIMEText(self._reminder_html(installment, borrower_name), "html"))

            return self._send_email(msg, recipient_email)

        except Exception:
            logger.error(
                "Error building payment reminder",
                exc_info=True,
                extra={"ctx": {"installment_id": installment.id}},
            )
            return False

    def _reminder_text(self, installment: LoanInstallment, borrower_name: str) -> str:
        return (
            f"Hello {borrower_name},\n\n"
            f"This is a reminder that an installment of {installment.amount} "
            f"for loan #{installment.loan_id} is due on {installment.due_date.isoformat()}.\n\n"
            "If you have already paid, please ignore this message.\n"
        )

    def _reminder_html(self, installment: LoanInstallment, borrower_name: str) -> str:
        return f"""
        <html>
        <body style="font-family: Arial, sans-serif;">
            <p>Hello {borrower_name},</p>
            <p>This is a reminder that an installment of <strong>{installment.amount}</strong>
               for loan <strong>#{installment.loan_id}</strong> is due on
               <strong>{installment.due_date.isoformat()}</strong>.</p>
            <p>If you have already paid, please ignore this message.</p>
        </body>
        </html>
        """

    def _send_email(self, msg: MIMEMultipart, recipient_email: str) -> bool:
        if not self.username or not self.password:
            logger.warning("Email configuration incomplete: missing username or password")
            return False

        try:
            server = smtplib.SMTP(self.smtp_server, self.smtp_port)
            server.starttls()
            server.login(self.username, self.password)
            server.sendmail(self.sender, recipient_email, msg.as_string())
            server.quit()

            logger.info("Email sent", extra={"ctx": {"to": recipient_email}})
            return True

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed", exc_info=True, extra={"ctx": {"server": self.smtp_server}})
            return False
        except (smtplib.SMTPException, OSError):
            logger.error("Error sending email", exc_info=True, extra={"ctx": {"to": recipient_email}})
            return False
