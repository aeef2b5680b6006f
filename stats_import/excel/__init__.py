"""Spreadsheet reading and cell coercion."""
