"""Email the staff report through Amazon SES."""

from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, Field

from doccs_sync.core import get_logger
from doccs_sync.core.errors import NotificationError

logger = get_logger(__name__)


class EmailConfig(BaseModel):
    """Sender, staff recipients and subject for the report email."""

    from_address: str = Field(..., description="Verified SES sender")
    staff_report_to: list[str] = Field(..., description="Staff recipients")
    staff_report_subject: str = Field(
        default="DOCCS Sync Report", description="Subject line"
    )


class EmailNotifier:
    """Sends plain-text email via SES."""

    def __init__(self, config: EmailConfig, ses_client: Optional[Any] = None):
        self.config = config
        self._ses_client = ses_client

    @property
    def ses_client(self):
        """Get SES client."""
        if self._ses_client is None:
            self._ses_client = boto3.client("ses")
        return self._ses_client

    def send_email(self, to: list[str], subject: str, text: str) -> str:
        """Send an email and return the SES message id.

        Raises:
            NotificationError: If SES rejects the message.
        """
        try:
            response = self.ses_client.send_email(
                Source=self.config.from_address,
                Destination={"ToAddresses": to},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": text, "Charset": "UTF-8"}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("email_send_failed", to=to, error=str(e))
            raise NotificationError(
                f"Failed to send email: {e}", recipient=", ".join(to)
            ) from e

        message_id = response.get("MessageId", "")
        logger.info("email_sent", message_id=message_id, to=to)
        return message_id

    def send_preconfigured(self, text: str) -> str:
        """Send ``text`` to the staff list with the configured subject."""
        return self.send_email(
            self.config.staff_report_to,
            self.config.staff_report_subject,
            text,
        )
