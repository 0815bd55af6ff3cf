"""
devserve - managed dev-server lifecycle controller

Starts a local development server, waits until it is ready to serve, and
later tears it down from an independent invocation. Used to bracket
browser-based end-to-end test runs.
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
