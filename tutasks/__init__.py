"""Spreadsheet-backed task persistence for tutasks."""
