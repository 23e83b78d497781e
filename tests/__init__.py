"""
KvDB SDK Test Suite.

This package contains:
- unit/: Unit tests (render/interpret, serialization, futures; no I/O)
- integration/: Clients end to end against the in-memory fake service
  and httpx.MockTransport
"""
