"""Domain records and helpers (requests/results, phone identifiers)."""
