"""
Daily routine backend
Reconciles the activity template with per-date records and keeps them in sync
"""

__version__ = "1.0.0"
