"""
SIO: Emergency Room Triage Desk

Patient intake, bracelet assignment, triage color classification and
visit status tracking for an emergency department.
"""

__version__ = "0.1.0"
__author__ = "SIO Team"
