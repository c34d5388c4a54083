"""Command-line interface adapters.

Provides CLI commands for working with orders:
- list / details / summary / export: Browse order history
- quote / checkout: Price and submit the current cart
- cancel / deliver / status: Change an order's status
- note / feedback: Attach notes and ratings to an order
"""
