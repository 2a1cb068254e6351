"""
Issue Triage Module
===================

Labels incoming GitHub issues, links similar issues, summarizes them and
notifies Slack.
"""
