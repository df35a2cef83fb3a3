"""
Core infrastructure: MongoDB (Motor), Redis cache and local JWT auth.

Clients are module-level singletons created at application startup.
"""
