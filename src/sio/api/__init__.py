"""
SIO API

FastAPI application for the triage desk.
"""
