"""Inkwell — private journaling service.

Users authenticate with short-lived access tokens (renewed silently through
refresh tokens) and keep journal entries whose title and content are
encrypted at rest, field by field.
"""

__version__ = "0.1.0"
