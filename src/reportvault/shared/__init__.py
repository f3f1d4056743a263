"""ReportVault Shared Module.

This package contains shared utilities, constants, protocols and error
handling used across ReportVault.
"""

__all__ = ["clock", "constants", "errors", "logging", "protocols"]
