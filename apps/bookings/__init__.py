"""Bookings app package.

This app encapsulates the court booking domain: the booking model, the
availability resolver, pricing, the lifecycle command handlers and the
``BookingEngine`` facade that collaborators call. Overlap checks and writes
run under court-scoped locks inside one database transaction.
"""
