"""
Billboard HTTP API, versioned by URL prefix (``/api/v1``).
"""
