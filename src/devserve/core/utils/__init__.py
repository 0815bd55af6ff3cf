"""Shared utilities for devserve (file I/O, interrupt handling)."""
