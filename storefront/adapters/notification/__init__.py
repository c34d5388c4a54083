"""Notification adapters for showing messages to the customer.

Implementations:
- Stdout (terminal messages, stdin confirmations)
"""
