"""Configuration loaded from the process environment."""

import os
from enum import Enum
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from doccs_sync.core.errors import ConfigurationError
from doccs_sync.core.resilience import RetryPolicy
from doccs_sync.lookup.transport import LookupTransportConfig
from doccs_sync.reporting.notifier import EmailConfig
from doccs_sync.store.airtable import AirtableConfig


class Environment(str, Enum):
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"


# Airtable field ids per base, keyed by logical field
PRODUCTION_FIELD_IDS = {
    "facility": "fldBgfrJtoRM2NY9s",
    "paroleHearingDate": "fldptoJdU40n5dlO7",
    "releaseDate": "flduQFFHqzBME4Ml1",
    "sentence": "fldAx3FzIpIkZrmLA",
    "county": "fldOc0FgeFDZhxj8n",
    "race": "fldMbteGxI06RGghM",
    "paroleHearingType": "fld1W4lMm0iLcV9ui",
    "paroleEligDate": "fldQ6fmoi52aTsQmw",
    "earliestReleaseDate": "fldzGsyKz7ZNV9S7A",
    "earliestReleaseType": "fldpbewHhqDldY4vW",
    "dateOfBirth": "fldmVco0UMW7hxj4I",
}

TEST_FIELD_IDS = {
    "facility": "fldyqHiZfLHnQnNG7",
    "paroleHearingDate": "fldVdinPD2V8dpGQb",
    "releaseDate": "fldw3U5tFxdrplE9G",
    "sentence": "fldGavIgPLs4s86Gv",
    "county": "fldfz22m7Ir1vuGWs",
    "race": "fldD55NmNGqxFsrM4",
    "paroleHearingType": "fldEIcJuHrhPpqeAd",
    "paroleEligDate": "fldgrSCo1R7KkW6ve",
    "earliestReleaseDate": "fldRit0cX7JknMNcA",
    # earliestReleaseType has no field of its own in the test base
    "dateOfBirth": "fldSNGnkmWfUDItaJ",
}

FIELD_IDS = {
    Environment.PRODUCTION: PRODUCTION_FIELD_IDS,
    Environment.STAGING: TEST_FIELD_IDS,
    Environment.TEST: TEST_FIELD_IDS,
}

_CREDENTIAL_PREFIX = {
    Environment.PRODUCTION: "",
    Environment.STAGING: "STAGING_",
    Environment.TEST: "TEST_",
}

FEWER_RECORDS_LIMIT = 10


class SyncConfig(BaseModel):
    """Everything one sync run needs."""

    environment: Environment = Field(default=Environment.TEST)
    airtable: AirtableConfig
    field_ids: dict[str, str] = Field(default_factory=lambda: dict(TEST_FIELD_IDS))
    batch_size: int = Field(default=50, ge=1, description="Records per batch")
    batch_delay_ms: int = Field(default=10000, ge=0, description="Delay between batches")
    record_limit: Optional[int] = Field(None, ge=1, description="Cap for limited runs")
    shuffle_records: bool = Field(default=False)
    enable_update_records: bool = Field(default=False, description="Write changes to Airtable")
    enable_typecast: bool = Field(default=False, description="Airtable typecast on write")
    debug: bool = Field(default=False)
    lookup: LookupTransportConfig = Field(default_factory=LookupTransportConfig)
    lookup_max_attempts: int = Field(default=5, ge=1)
    lookup_initial_delay_ms: int = Field(default=5000, ge=0)
    lookup_max_delay_ms: int = Field(default=60000, ge=0)
    lookup_backoff_factor: float = Field(default=2.0, ge=1.0)
    report_bucket: Optional[str] = Field(None, description="S3 bucket for reports")
    email: Optional[EmailConfig] = Field(None, description="Staff report email")

    @property
    def json_logs(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.lookup_max_attempts,
            initial_delay_ms=self.lookup_initial_delay_ms,
            max_delay_ms=self.lookup_max_delay_ms,
            backoff_factor=self.lookup_backoff_factor,
        )


def _flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in ("true", "1", "yes")


def _number(environ: Mapping[str, str], name: str, default, cast=int):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", setting=name) from None


def _airtable_config(environ: Mapping[str, str], environment: Environment) -> AirtableConfig:
    prefix = _CREDENTIAL_PREFIX[environment]
    names = {
        "api_key": f"{prefix}AIRTABLE_API_KEY",
        "base_id": f"{prefix}AIRTABLE_BASE_ID",
        "table_id": f"{prefix}AIRTABLE_TABLE_ID",
    }
    missing = [env_name for env_name in names.values() if not environ.get(env_name)]
    if missing:
        raise ConfigurationError(
            f"Missing Airtable settings for {environment.value}: {', '.join(missing)}",
            setting=missing[0],
        )
    return AirtableConfig(
        **{field: environ[env_name] for field, env_name in names.items()},
        view=environ.get(f"{prefix}AIRTABLE_VIEW") or None,
    )


def _email_config(environ: Mapping[str, str]) -> Optional[EmailConfig]:
    sender = environ.get("EMAIL_FROM")
    recipients = [
        address.strip()
        for address in environ.get("STAFF_REPORT_TO", "").split(",")
        if address.strip()
    ]
    if not sender or not recipients:
        return None
    return EmailConfig(
        from_address=sender,
        staff_report_to=recipients,
        staff_report_subject=environ.get("STAFF_REPORT_SUBJECT") or "DOCCS Sync Report",
    )


def load_config(environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """Build the sync configuration from environment variables.

    Raises:
        ConfigurationError: On missing credentials or invalid values.
    """
    environ = os.environ if environ is None else environ

    raw_env = environ.get("ENV", Environment.TEST.value).strip().lower()
    try:
        environment = Environment(raw_env)
    except ValueError:
        raise ConfigurationError(f"Unknown environment {raw_env!r}", setting="ENV") from None

    record_limit = _number(environ, "RECORD_LIMIT", None)
    if record_limit is None and _flag(environ, "FEWER_RECORDS"):
        record_limit = FEWER_RECORDS_LIMIT

    try:
        return SyncConfig(
            environment=environment,
            airtable=_airtable_config(environ, environment),
            field_ids=dict(FIELD_IDS[environment]),
            batch_size=_number(environ, "BATCH_SIZE", 50),
            batch_delay_ms=_number(environ, "BATCH_DELAY", 10000),
            record_limit=record_limit,
            shuffle_records=_flag(environ, "SHUFFLE_RECORDS"),
            enable_update_records=_flag(environ, "ENABLE_UPDATE_RECORDS"),
            enable_typecast=_flag(environ, "ENABLE_TYPECAST"),
            debug=_flag(environ, "DEBUG"),
            lookup_max_attempts=_number(environ, "LOOKUP_MAX_ATTEMPTS", 5),
            lookup_initial_delay_ms=_number(environ, "LOOKUP_INITIAL_DELAY", 5000),
            lookup_max_delay_ms=_number(environ, "LOOKUP_MAX_DELAY", 60000),
            lookup_backoff_factor=_number(environ, "LOOKUP_BACKOFF_FACTOR", 2.0, cast=float),
            report_bucket=environ.get("REPORT_BUCKET") or None,
            email=_email_config(environ),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
