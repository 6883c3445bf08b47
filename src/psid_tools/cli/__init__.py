"""
PSID Tools Command-Line Interface
=================================

This package provides the command-line tools for PSID Tools:

- **psidtool**: inspect, edit, validate and fingerprint PSID files

Each tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["psidtool"]
