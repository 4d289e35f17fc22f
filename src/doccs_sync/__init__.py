"""Sync Airtable records with the NYS DOCCS incarcerated person lookup."""

__version__ = "0.1.0"
