"""
Core application utilities for settings, logging and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- The typed procurement error taxonomy
- Dependency helpers (DB session, actor extraction, role gates)
"""
