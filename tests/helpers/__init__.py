"""Shared helpers for the devserve test suite."""
