"""
Core utilities shared across the account gateway.

This package hosts:
- configuration helpers (env vars, backend selection, endpoints)
- cross-cutting services such as password hashing and the mailer used to
  deliver verification codes

Services depend on these primitives instead of reading os.environ directly.
"""
