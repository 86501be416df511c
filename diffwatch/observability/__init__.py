"""Logging, metrics and error reporting for diffwatch."""
