"""Business logic services.

This package contains the engine: service-layer functions that take a
database session (and, for content, a blob store), enforce ownership and
accounting rules, and raise ApiError on failure. Services are called by
route handlers and by the administrative CLI.

Modules:
- accounts: signup, credentials, suspension, destruction
- sessions: single active session per account
- usage: quota grants, admission and usage accounting
- buckets, files: digest-addressed storage
- shares: public share tokens
"""
