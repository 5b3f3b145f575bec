"""Configuration module for the z/OS FTP client.

This module reads what an application has saved:
- ClientSettings: Connection, transfer and logging defaults
- CredentialManager: Password lookup via keyring
"""
