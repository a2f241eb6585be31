"""Settings package for Courtside.

`base.py` contains common configuration shared across environments; the
`dev.py`, `prod.py` and `test.py` modules extend it with environment
specific overrides.
"""
