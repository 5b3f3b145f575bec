"""Utility module for the z/OS FTP client.

This module provides cross-cutting utilities:
- Logging: Configured logging with password redaction
- Validators: Input validation for hosts, ports and dataset names
"""
