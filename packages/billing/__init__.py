"""
Billing package - recurring subscriptions charged against a stored card token.

This package integrates with:
- T-Bank acquiring API: charge creation, rebill settlement, state queries
"""
