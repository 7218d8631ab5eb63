"""Core session primitives (vitals rules and the event log).

Kept free of FastAPI and Redis concerns so it can be reused by the sync engine, API routes, and tests.
"""
