"""
Billboard API v1 Router Aggregator.

Combines every v1 endpoint router into ``api_router``, mounted by the
application under ``/api/v1``:

    /auth        register, login, logout, me
    /ads         ad CRUD
    /campaigns   campaign CRUD
    /pricing     Smart Pricing Engine
    /payments    Stripe checkout, refunds and webhooks
    /referrals   referral codes, rewards and leaderboard
    /deals       daily deals feed
    /surprises   surprise idea generator
    /ai          AI ad copy and images

A router whose module fails to import is skipped with a warning so the rest
of the API still starts.
"""

import importlib
import logging

from fastapi import APIRouter


logger = logging.getLogger(__name__)

api_router = APIRouter()

loaded_routers: list[str] = []

# (module, URL prefix, OpenAPI tag)
ROUTER_MODULES: tuple[tuple[str, str, str], ...] = (
    ("auth", "/auth", "authentication"),
    ("ads", "/ads", "ads"),
    ("campaigns", "/campaigns", "campaigns"),
    ("pricing", "/pricing", "pricing"),
    ("payments", "/payments", "payments"),
    ("referrals", "/referrals", "referrals"),
    ("deals", "/deals", "deals"),
    ("surprises", "/surprises", "surprises"),
    ("ai", "/ai", "ai"),
)


for module_name, prefix, tag in ROUTER_MODULES:
    try:
        module = importlib.import_module(f"{__name__}.{module_name}")
    except ImportError as e:
        logger.warning("%s router not available: %s", module_name, e)
        continue

    api_router.include_router(module.router, prefix=prefix, tags=[tag])
    loaded_routers.append(module_name)
    logger.debug("Loaded %s router", module_name)


__all__ = ["api_router", "loaded_routers"]

if loaded_routers:
    logger.info("API v1 routers loaded: %s", ", ".join(loaded_routers))
else:
    logger.warning("No API v1 routers were loaded")
