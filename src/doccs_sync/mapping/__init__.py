"""Field mappings and value normalizers."""

from doccs_sync.mapping.normalizers import (
    duration_to_years,
    format_years,
    is_empty,
    normalize_date,
    to_title_case,
)
from doccs_sync.mapping.registry import (
    FIELD_CATALOGUE,
    ComputedRange,
    FieldMapping,
    FieldMappingRegistry,
    FieldRule,
    FieldType,
    ISODate,
    MultiSelect,
    PlainText,
    TitleCasedText,
    build_mappings,
    value_matches_type,
)

__all__ = [
    # Normalizers
    "duration_to_years",
    "format_years",
    "is_empty",
    "normalize_date",
    "to_title_case",
    # Registry
    "FIELD_CATALOGUE",
    "ComputedRange",
    "FieldMapping",
    "FieldMappingRegistry",
    "FieldRule",
    "FieldType",
    "ISODate",
    "MultiSelect",
    "PlainText",
    "TitleCasedText",
    "build_mappings",
    "value_matches_type",
]
