"""
Triage Interfaces Layer
========================

FastAPI routes for the triage module.
"""

from issue_triage.triage.interfaces.controllers import triage_router

__all__ = ["triage_router"]
