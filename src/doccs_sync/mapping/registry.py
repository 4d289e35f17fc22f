"""Field mapping registry between DOCCS lookup data and Airtable fields.

Each logical field pairs a rule (how to compare and how to produce the value to
write) with the Airtable field id it targets. Field ids are resolved to field
names once, against the live table schema; an unresolved id is fatal.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from doccs_sync.core import get_logger
from doccs_sync.core.errors import ConfigurationError, DataTypeError, FieldMappingNotFound
from doccs_sync.mapping.normalizers import (
    duration_to_years,
    format_years,
    normalize_date,
    to_title_case,
)

logger = get_logger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class FieldType(str, Enum):
    """Value shapes an Airtable field accepts."""

    MULTIPLE_SELECTS = "multipleSelects"
    DATE = "date"
    TEXT = "text"
    CHECKBOX = "checkbox"
    NUMBER = "number"


# Airtable schema types accepted for each declared type
_AIRTABLE_TYPES = {
    FieldType.MULTIPLE_SELECTS: {"multipleSelects"},
    FieldType.DATE: {"date"},
    FieldType.TEXT: {"singleLineText", "multilineText", "richText", "singleSelect"},
    FieldType.CHECKBOX: {"checkbox"},
    FieldType.NUMBER: {"number", "currency", "percent", "duration"},
}


class FieldRule(ABC):
    """How one kind of field is compared and transformed."""

    field_type: FieldType

    @abstractmethod
    def compare(self, stored: Any, source: Any) -> bool:
        """Return True when the stored value already agrees with the source."""

    @abstractmethod
    def transform(self, source: Any) -> Any:
        """Return the canonical value to write for ``source``."""


class PlainText(FieldRule):
    field_type = FieldType.TEXT

    def compare(self, stored: Any, source: Any) -> bool:
        return stored == self.transform(source)

    def transform(self, source: Any) -> str:
        return str(source)


class TitleCasedText(FieldRule):
    field_type = FieldType.TEXT

    def compare(self, stored: Any, source: Any) -> bool:
        return stored == self.transform(source)

    def transform(self, source: Any) -> str:
        return to_title_case(source)


class ISODate(FieldRule):
    """Dates as YYYY-MM-DD.

    A source that does not normalize is treated as agreeing with whatever is
    stored, so an unparseable date never blanks a stored one.
    """

    field_type = FieldType.DATE

    def compare(self, stored: Any, source: Any) -> bool:
        normalized = self.transform(source)
        return not normalized or stored == normalized

    def transform(self, source: Any) -> str:
        return normalize_date(source)


class ComputedRange(FieldRule):
    """Sentence range "<min> - <max>" in decimal years from two duration fields."""

    field_type = FieldType.TEXT

    def __init__(self, min_key: str, max_key: str):
        self.min_key = min_key
        self.max_key = max_key

    def compare(self, stored: Any, source: Any) -> bool:
        return stored == self.transform(source)

    def transform(self, source: Any) -> str:
        minimum = format_years(duration_to_years(source.get(self.min_key)))
        maximum = format_years(duration_to_years(source.get(self.max_key)))
        return f"{minimum} - {maximum}"


class MultiSelect(FieldRule):
    """A multiple-select field holding the title-cased source as one option."""

    field_type = FieldType.MULTIPLE_SELECTS

    def compare(self, stored: Any, source: Any) -> bool:
        return isinstance(stored, list) and to_title_case(source) in stored

    def transform(self, source: Any) -> list[str]:
        return [to_title_case(source)]


@dataclass(frozen=True)
class FieldMapping:
    """One logical field: DOCCS source key(s), Airtable field id and rule."""

    key: str
    field_id: str
    rule: FieldRule
    source_keys: tuple[str, ...] = ()
    cause_alert: bool = False

    @property
    def field_type(self) -> FieldType:
        return self.rule.field_type

    @property
    def required_fields(self) -> tuple[str, ...]:
        """Source keys combined into one value, empty for single-key fields."""
        return self.source_keys if len(self.source_keys) > 1 else ()

    def source_value(self, data: Mapping[str, Any]) -> Any:
        """Read this field's value out of a DOCCS lookup result."""
        if self.required_fields:
            return {k: data.get(k) for k in self.required_fields}
        return data.get(self.source_keys[0] if self.source_keys else self.key)

    def test(self, stored: Any, source: Any) -> bool:
        return self.rule.compare(stored, source)

    def update(self, source: Any) -> Any:
        return self.rule.transform(source)


# logical key -> (rule, DOCCS source keys, cause_alert); order is diff order
FIELD_CATALOGUE: dict[str, tuple[FieldRule, tuple[str, ...], bool]] = {
    "facility": (MultiSelect(), ("facility",), True),
    "paroleHearingDate": (ISODate(), ("paroleHearingDate",), True),
    "releaseDate": (ISODate(), ("releaseDate",), True),
    "sentence": (
        ComputedRange("minSentence", "maxSentence"),
        ("minSentence", "maxSentence"),
        False,
    ),
    "county": (TitleCasedText(), ("county",), False),
    "race": (PlainText(), ("race",), False),
    "paroleHearingType": (PlainText(), ("paroleHearingType",), False),
    "paroleEligDate": (ISODate(), ("paroleEligDate",), False),
    "earliestReleaseDate": (ISODate(), ("earliestReleaseDate",), True),
    "earliestReleaseType": (PlainText(), ("earliestReleaseType",), False),
    "dateOfBirth": (ISODate(), ("dateOfBirth",), False),
}


def build_mappings(field_ids: Mapping[str, str]) -> list[FieldMapping]:
    """Create mappings for every catalogued key that has a configured field id."""
    mappings = []
    for key, (rule, source_keys, cause_alert) in FIELD_CATALOGUE.items():
        field_id = field_ids.get(key)
        if not field_id:
            logger.debug("field_mapping_skipped", key=key, reason="no field id configured")
            continue
        mappings.append(FieldMapping(
            key=key,
            field_id=field_id,
            rule=rule,
            source_keys=source_keys,
            cause_alert=cause_alert,
        ))

    unknown = set(field_ids) - set(FIELD_CATALOGUE)
    if unknown:
        raise ConfigurationError(
            f"Field ids configured for unknown keys: {', '.join(sorted(unknown))}",
            setting="field_ids",
        )
    return mappings


def _is_valid_iso_date(value: str) -> bool:
    if not _ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def value_matches_type(field_type: FieldType, value: Any) -> bool:
    """Check a value against the shape a field type accepts."""
    if field_type == FieldType.MULTIPLE_SELECTS:
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    if field_type == FieldType.DATE:
        return isinstance(value, str) and (value == "" or _is_valid_iso_date(value))
    if field_type == FieldType.TEXT:
        return isinstance(value, str)
    if field_type == FieldType.CHECKBOX:
        return isinstance(value, bool)
    if field_type == FieldType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return False


class FieldMappingRegistry:
    """Resolved field mappings for one Airtable table."""

    def __init__(
        self,
        mappings: Iterable[FieldMapping],
        schema_fields: Iterable[Mapping[str, Any]],
    ):
        """Resolve every mapping against the table's schema fields.

        Args:
            mappings: Field mappings in diff order.
            schema_fields: ``{"id", "name", "type"}`` entries of the live table.

        Raises:
            FieldMappingNotFound: If any mapped field id is not in the schema.
        """
        self._schema = {f["id"]: dict(f) for f in schema_fields}
        self._mappings: dict[str, FieldMapping] = {}
        self._names: dict[str, str] = {}
        self._by_name: dict[str, FieldMapping] = {}

        for mapping in mappings:
            name = self.resolve_target_field_name(mapping.field_id, logical_key=mapping.key)
            self._mappings[mapping.key] = mapping
            self._names[mapping.key] = name
            self._by_name[name] = mapping

            live_type = self._schema[mapping.field_id].get("type")
            if live_type and live_type not in _AIRTABLE_TYPES[mapping.field_type]:
                logger.warning(
                    "field_type_mismatch",
                    key=mapping.key,
                    field=name,
                    declared=mapping.field_type.value,
                    airtable_type=live_type,
                )

        logger.info("field_mappings_resolved", count=len(self._mappings))

    @classmethod
    def from_schema(
        cls,
        schema: Mapping[str, Any],
        table_id: str,
        field_ids: Mapping[str, str],
    ) -> "FieldMappingRegistry":
        """Build a registry from an Airtable base schema response.

        Raises:
            ConfigurationError: If the table is not in the base.
            FieldMappingNotFound: If a mapped field id is not in the table.
        """
        table = next(
            (t for t in schema.get("tables", []) if t.get("id") == table_id),
            None,
        )
        if table is None:
            raise ConfigurationError(
                f"Table {table_id} not found in base schema",
                setting="table_id",
            )
        return cls(build_mappings(field_ids), table.get("fields", []))

    def get_mapping(self, key: str) -> FieldMapping:
        try:
            return self._mappings[key]
        except KeyError:
            raise FieldMappingNotFound(
                f"No field mapping for {key}", logical_key=key
            ) from None

    def all_mappings(self) -> list[tuple[str, FieldMapping]]:
        return list(self._mappings.items())

    def field_name(self, key: str) -> str:
        """Resolved Airtable field name of a logical key."""
        self.get_mapping(key)
        return self._names[key]

    def resolve_target_field_name(
        self,
        field_id: str,
        logical_key: Optional[str] = None,
    ) -> str:
        field = self._schema.get(field_id)
        if field is None:
            raise FieldMappingNotFound(
                f"Field mapping not found for {field_id}",
                field_id=field_id,
                logical_key=logical_key,
            )
        return field["name"]

    def mapping_for_field(self, field_name: str) -> FieldMapping:
        try:
            return self._by_name[field_name]
        except KeyError:
            raise FieldMappingNotFound(
                f"No field mapping targets {field_name}"
            ) from None

    def validate_type(self, field_name: str, value: Any) -> None:
        """Check a value about to be written against its field's declared type.

        Raises:
            DataTypeError: If the value does not fit the declared type.
            FieldMappingNotFound: If no mapping targets ``field_name``.
        """
        field_type = self.mapping_for_field(field_name).field_type
        if not value_matches_type(field_type, value):
            raise DataTypeError(
                f"Invalid value for {field_name}: expected {field_type.value}",
                field=field_name,
                value=value,
                expected_type=field_type.value,
            )
