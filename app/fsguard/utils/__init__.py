"""Utility modules for fsguard.

This module exports commonly used utility functions.
"""

from fsguard.utils.formatting import (
    console,
    create_duplicates_table,
    err_console,
    format_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from fsguard.utils.shell import (
    CommandResult,
    CommandRunner,
    ProcessFailedError,
    run_command,
)

__all__ = [
    "CommandResult",
    "CommandRunner",
    "ProcessFailedError",
    "console",
    "create_duplicates_table",
    "err_console",
    "format_size",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
]
