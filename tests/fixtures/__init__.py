"""Shared test fixtures: factories and in-memory fakes."""
