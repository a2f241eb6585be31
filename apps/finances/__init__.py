"""Finances app package.

This app contains the payment records attached to bookings, their audit
trail, credit packages bought by bank transfer and the payment coordinator
that settles bookings against the credits ledger or an external proof.
"""
