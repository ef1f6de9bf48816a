"""
Domain layer - Core reading-tracker models.

This module contains the domain models shared by the client state layer and
the backend, isolated from HTTP, storage and UI concerns.
"""
