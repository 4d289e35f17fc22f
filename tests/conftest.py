"""Shared fixtures and fakes for the DOCCS sync tests."""

from typing import Any, Optional

import pytest
from hypothesis import settings, Verbosity

from doccs_sync.config import TEST_FIELD_IDS
from doccs_sync.core.errors import StoreError
from doccs_sync.mapping.registry import FieldMappingRegistry, build_mappings
from doccs_sync.store.airtable import StoreRecord

settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    verbosity=Verbosity.normal,
)
settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    verbosity=Verbosity.quiet,
)
settings.load_profile("default")


TABLE_ID = "tblInmates"

FIELD_NAMES = {
    "facility": ("Housing / Releasing Facility", "multipleSelects"),
    "paroleHearingDate": ("Next Interview Date", "date"),
    "releaseDate": ("Latest Release Date", "date"),
    "sentence": ("Sentence", "singleLineText"),
    "county": ("County", "singleLineText"),
    "race": ("Race", "singleLineText"),
    "paroleHearingType": ("Parole Interview Type", "singleLineText"),
    "paroleEligDate": ("Parole Eligibility Date", "date"),
    "earliestReleaseDate": ("Earliest Release Date", "date"),
    "dateOfBirth": ("Date of Birth", "date"),
}

# DOCCS lookup body and the Airtable fields that already agree with it
DOCCS_DATA = {
    "facility": "GREEN HAVEN",
    "paroleHearingDate": "03/2025",
    "releaseDate": "",
    "minSentence": "15 years",
    "maxSentence": "25 Years, 6 Months",
    "county": "KINGS",
    "race": "BLACK",
    "paroleHearingType": "INITIAL",
    "paroleEligDate": "03/15/2025",
    "earliestReleaseDate": "03/15/25",
    "dateOfBirth": "01/02/1980",
}

SYNCED_FIELDS = {
    "Housing / Releasing Facility": ["Green Haven"],
    "Next Interview Date": "2025-03-01",
    "Sentence": "15 - 25.5",
    "County": "Kings",
    "Race": "BLACK",
    "Parole Interview Type": "INITIAL",
    "Parole Eligibility Date": "2025-03-15",
    "Earliest Release Date": "2025-03-15",
    "Date of Birth": "1980-01-02",
}


def make_schema(skip: tuple[str, ...] = ()) -> dict[str, Any]:
    fields = [{"id": "fldDin0000000001", "name": "DIN", "type": "singleLineText"}]
    for key, field_id in TEST_FIELD_IDS.items():
        if key in skip:
            continue
        name, field_type = FIELD_NAMES[key]
        fields.append({"id": field_id, "name": name, "type": field_type})
    return {"tables": [{"id": TABLE_ID, "name": "Inmates", "fields": fields}]}


def make_record(record_id: str, din: Optional[str], **fields: Any) -> StoreRecord:
    return StoreRecord(id=record_id, fields={"DIN": din, **fields})


class FakeTransport:
    """Lookup transport returning scripted responses per DIN.

    A scripted item that is an exception is raised; anything else is
    returned. The last item repeats once the script is used up.
    """

    def __init__(self, responses: Optional[dict[str, list[Any]]] = None, default: Any = None):
        self.responses = {din: list(items) for din, items in (responses or {}).items()}
        self.default = DOCCS_DATA if default is None else default
        self.calls: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def lookup(self, din: str) -> Any:
        self.calls.append(din)
        script = self.responses.get(din)
        if script:
            item = script.pop(0) if len(script) > 1 else script[0]
        else:
            item = self.default
        if isinstance(item, Exception):
            raise item
        return item


class FakeStore:
    """In-memory Airtable table that applies updates to its records."""

    def __init__(
        self,
        records: Optional[list[StoreRecord]] = None,
        schema: Optional[dict[str, Any]] = None,
        fail_updates: bool = False,
    ):
        self.records = {r.id: r for r in records or []}
        self.schema = schema or make_schema()
        self.fail_updates = fail_updates
        self.updates: list[tuple[str, dict[str, Any], bool]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    async def fetch_schema(self) -> dict[str, Any]:
        return self.schema

    async def list_records(self, view: Optional[str] = None) -> list[StoreRecord]:
        return list(self.records.values())

    async def update_record(self, record_id: str, fields: dict[str, Any], typecast: bool = False):
        self.updates.append((record_id, fields, typecast))
        if self.fail_updates:
            raise StoreError("INVALID_MULTIPLE_CHOICE_OPTIONS", status=422, record_id=record_id)
        self.records[record_id].fields.update(fields)
        return self.records[record_id]


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def schema():
    return make_schema()


@pytest.fixture
def registry(schema):
    return FieldMappingRegistry(build_mappings(TEST_FIELD_IDS), schema["tables"][0]["fields"])


@pytest.fixture
def sleep():
    return RecordingSleep()
