"""Authentication.

Learn: One authentication path — email/password → JWT access/refresh pair.
Every protected request presents the access token as a Bearer credential;
the AuthGate dependency (dependencies.py) verifies it and resolves a
CurrentIdentity that downstream code uses to scope queries by owner.
"""
