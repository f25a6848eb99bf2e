"""
DevsMentor career guidance core

Usage entitlements, daily quotas and rate-limit-aware dispatch for the
AI features of the DevsMentor career-guidance app.
"""

__version__ = "1.0.0"
__author__ = "DevsMentor Team"
