"""Core primitives for devserve (process inspection, state, server lifecycle)."""
