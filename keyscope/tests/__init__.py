"""Keyscope test suite."""
