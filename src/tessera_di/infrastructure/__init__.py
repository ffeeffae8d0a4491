"""
Infrastructure layer - External integrations.

This layer contains integrations with external frameworks and tools.
It depends on both Application and Domain layers.

Submodules are imported explicitly so that FastAPI stays an optional dependency.
"""
