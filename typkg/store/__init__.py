"""Versioned package store — install, list, and clean local packages."""
