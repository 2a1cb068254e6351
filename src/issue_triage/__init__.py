"""
Issue Triage Service
====================

Semantic-cache backed labeling and triage for GitHub issues.
"""

__version__ = "1.0.0"
