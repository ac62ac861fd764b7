"""
Calendar storage and notification integrations.

Provides the repository protocol, the local database backend and the
webhook notification surface.
"""
