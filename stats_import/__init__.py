"""Monthly statistics spreadsheet importer for L'Assistant Com'."""

__version__ = "0.3.0"
