"""
Account gateway: registration, code verification, login and token purchases.

Use `gateway.services.account_gateway.build_gateway()` to obtain the backend
adapter selected by configuration.
"""
