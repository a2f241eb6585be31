"""Accounts app package.

Holds the per-account balances for the two Courtside currencies (credits
and points) together with their append-only ledgers. Balances are only ever
changed through :mod:`apps.accounts.ledger`, in the same transaction that
appends the matching ledger entry.
"""
