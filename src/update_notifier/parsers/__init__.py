"""Manifest and version range parsing helpers."""
