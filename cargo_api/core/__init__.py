"""
Core package for shared utilities.

Configuration, structured logging and token/password helpers used across
the database, service and API layers.
"""
