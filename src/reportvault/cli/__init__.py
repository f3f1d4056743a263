"""ReportVault command-line interface."""
