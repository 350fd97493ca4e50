"""
Persistence adapters.

The table backend reaches the hosted `users` table through SQLRepository;
services depend on it instead of opening sessions themselves.
"""
