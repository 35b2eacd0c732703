"""
HTTP API for the custody ledger.
"""
