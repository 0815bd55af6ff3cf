"""
devserve CLI package.

Root commands live in ``cli/commands/`` and are discovered automatically;
each module exposes ``SUMMARY``, ``register_args(parser)`` and
``main(args) -> int``.

Framework utilities for building CLI commands:
- _output: Output formatting (JSON/text modes)
- _args: Common argument registration helpers
- _utils: Settings and logging setup
"""
from ._output import OutputFormatter, print_error, print_success
from ._args import add_json_flag, add_server_flags, add_standard_flags, add_verbose_flag
from ._utils import load_settings, resolve_settings, setup_logging

__all__ = [
    "OutputFormatter",
    "print_success",
    "print_error",
    "add_json_flag",
    "add_server_flags",
    "add_standard_flags",
    "add_verbose_flag",
    "load_settings",
    "resolve_settings",
    "setup_logging",
]
