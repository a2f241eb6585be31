"""
Shared Kernel

Building blocks used by every Courtside app: the error taxonomy, value
objects, domain events, the unit of work and the in-process message bus.
"""
