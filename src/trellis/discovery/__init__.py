"""Unique IDs, testable resolution and descriptor tree discovery."""
