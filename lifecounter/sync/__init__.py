"""Synchronization between a local GameSession and the shared session document."""
