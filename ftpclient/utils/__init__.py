"""Utility module for ftpclient.

This module provides cross-cutting utilities:
- Logging: Configured logging with credential redaction
- Validators: Input validation for host, port, timeout and paths
"""
