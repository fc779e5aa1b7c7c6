"""Requirement models, range parsing and version matching."""
