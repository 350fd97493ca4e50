"""
Account use cases.

`account_gateway` defines the polymorphic AccountGateway interface and the
factory that selects an adapter at startup; `http_gateway` and
`table_gateway` are the two adapters.
"""
