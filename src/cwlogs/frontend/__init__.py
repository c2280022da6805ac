"""Textual UI for browsing the query history."""
