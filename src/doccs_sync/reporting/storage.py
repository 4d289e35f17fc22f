"""Persist run reports to S3."""

from datetime import datetime, timezone
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from doccs_sync.core import get_logger
from doccs_sync.core.errors import StorageError
from doccs_sync.reporting.report import Report

logger = get_logger(__name__)

CONTENT_TYPES = {
    "json": "application/json",
    "txt": "text/plain",
}


def content_type_for(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return CONTENT_TYPES.get(extension, "application/octet-stream")


class ReportStorage:
    """Writes report files into an S3 bucket."""

    def __init__(self, bucket_name: str, s3_client: Optional[Any] = None):
        """Initialize report storage.

        Args:
            bucket_name: S3 bucket receiving the reports.
            s3_client: Optional S3 client (for testing).
        """
        self.bucket_name = bucket_name
        self._s3_client = s3_client

    @property
    def s3_client(self):
        """Get S3 client."""
        if self._s3_client is None:
            self._s3_client = boto3.client("s3")
        return self._s3_client

    def save(
        self,
        path: str,
        content: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict[str, str]] = None,
    ) -> str:
        """Store ``content`` at ``path``; returns the s3:// URI.

        Raises:
            StorageError: If the upload fails.
        """
        object_metadata = {
            "created-at": datetime.now(timezone.utc).isoformat(),
            **(metadata or {}),
        }
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=path,
                Body=content.encode("utf-8"),
                ContentType=content_type or content_type_for(path),
                Metadata=object_metadata,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("report_save_failed", path=path, error=str(e))
            raise StorageError(f"Failed to save {path}: {e}", path=path) from e

        uri = f"s3://{self.bucket_name}/{path}"
        logger.info("report_saved", uri=uri)
        return uri

    def save_reports(
        self,
        report: Report,
        environment: str,
        timestamp: Optional[datetime] = None,
    ) -> dict[str, str]:
        """Save the JSON report and the staff text report for one run."""
        stamp = (timestamp or datetime.now(timezone.utc)).isoformat()
        metadata = {"environment": environment}

        return {
            "json": self.save(
                f"reports/{environment}-{stamp}-report.json",
                report.to_json(),
                metadata=metadata,
            ),
            "text": self.save(
                f"staff-reports/{environment}-{stamp}-staff-report.txt",
                report.get_text_report(),
                metadata=metadata,
            ),
        }
