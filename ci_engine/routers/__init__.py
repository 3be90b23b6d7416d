"""
ABFI CI Engine - Routers Package

FastAPI route handlers.

Routers:
- ci_reports: CI reports, verification workflow, audit history, certificates
"""

from ci_engine.routers import ci_reports

__all__ = ["ci_reports"]
