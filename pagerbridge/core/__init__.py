"""Correlation, action dispatch, rendering and slash commands."""
