"""
release-planner test suite.

helpers.py holds plan/product builders and in-memory fake stores that can be
scripted to fail, used by the orchestrator tests.
"""
