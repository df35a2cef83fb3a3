"""
Billboard backend: the ad marketplace API ("the Times Square of the Internet").

Package Structure:
- api/: REST endpoints, versioned under /api/v1
- core/: MongoDB, Redis and JWT auth infrastructure
- models/: Pydantic document models
- services/: pricing, payments, referrals and AI generators
- utils/: logging and security helpers
"""

__version__ = "1.0.0"
__app_name__ = "Billboard"
