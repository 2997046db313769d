"""
End-to-end conformance scenarios for the MongoDB data adapter.

Each module drives the adapter the way an idempotency middleware would,
against the in-process fake database from conftest.py.
"""
