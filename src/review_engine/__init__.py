"""Diff, provenance and comment engine for reviewing code changes."""
