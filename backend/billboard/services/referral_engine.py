"""
Referral Engine for the Billboard growth programme.

Users share a referral code; when a new user applies it, a pending reward is
created for the code owner. An operator later processes pending rewards, which
writes the benefit (credit, discount coupon or free ad slot) to the
``user_credits`` ledger and marks the reward paid.

Collections:
    referral_codes    one document per code, ``_id`` = ``ref_...`` / ``promo_...``
    referral_rewards  one document per successful application, ``_id`` = ``reward_...``
    user_credits      ledger entries written on payout

All methods need MongoDB; ``get_db_client()`` raises RuntimeError when it is
not initialised and that error is left to the caller.
"""

import logging
import re
import time
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from billboard.config import Settings, get_settings
from billboard.core.database import get_db_client
from billboard.models.referral import (
    REWARD_CREDIT_KINDS,
    ReferralCode,
    ReferralReward,
    RewardStatus,
    RewardType,
    UserCredit,
)
from billboard.utils.logger import add_log_context
from billboard.utils.security import generate_hex_token, generate_secure_code


logger = logging.getLogger(__name__)

REFERRAL_CODE_LENGTH = 8
MIN_CODE_LENGTH = 6
CODE_FORMAT = re.compile(r"^[A-Z0-9]+$")

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "!~*'()"

SHARE_MESSAGE = (
    "🎯 Join Billboard - The Times Square of the Internet! "
    "Use my referral code {code} and get $10 credit for your first ad campaign!"
)


class ReferralError(Exception):
    """Base exception for referral failures."""


class DuplicateReferralCodeError(ReferralError):
    """Raised when a requested custom code is already taken."""


def _new_id(prefix: str) -> str:
    """``{prefix}_{epoch ms}_{8 hex chars}``"""
    return f"{prefix}_{int(time.time() * 1000)}_{generate_hex_token(8)}"


def _as_utc(value: datetime) -> datetime:
    """MongoDB returns naive UTC datetimes."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _encode(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


class ReferralEngine:
    """Referral codes, reward lifecycle and programme statistics."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)

    # =========================================================================
    # Codes
    # =========================================================================

    async def _insert_code(self, referral_code: ReferralCode) -> ReferralCode:
        codes = get_db_client().get_referral_codes_collection()
        try:
            await codes.insert_one(referral_code.model_dump(by_alias=True))
        except DuplicateKeyError as e:
            raise DuplicateReferralCodeError(
                f"Referral code {referral_code.code} is already taken"
            ) from e
        self.logger.info("Referral code %s created for %s", referral_code.code, referral_code.user_id)
        return referral_code

    async def generate_referral_code(
        self, user_id: str, custom_code: str | None = None
    ) -> ReferralCode:
        """
        Create a standard $10-credit code for ``user_id``.

        Without ``custom_code`` an 8-character A-Z0-9 code is drawn at random.

        Raises:
            DuplicateReferralCodeError: If the code already exists.
        """
        referral_code = ReferralCode(
            _id=_new_id("ref"),
            code=custom_code or generate_secure_code(REFERRAL_CODE_LENGTH),
            user_id=user_id,
            reward_type=RewardType.CREDIT,
            reward_value=self.settings.referral_credit_value,
        )
        return await self._insert_code(referral_code)

    async def create_promotional_code(
        self,
        user_id: str,
        code: str,
        reward_type: RewardType,
        reward_value: float,
        max_uses: int | None = None,
        expires_at: datetime | None = None,
    ) -> ReferralCode:
        """Create a campaign code with its own reward, usage cap and expiry."""
        promo = ReferralCode(
            _id=_new_id("promo"),
            code=code,
            user_id=user_id,
            reward_type=reward_type,
            reward_value=reward_value,
            max_uses=max_uses,
            expires_at=expires_at,
        )
        return await self._insert_code(promo)

    async def get_user_codes(self, user_id: str) -> list[ReferralCode]:
        cursor = get_db_client().get_referral_codes_collection().find({"user_id": user_id})
        return [ReferralCode.model_validate(doc) for doc in await cursor.to_list(length=None)]

    @staticmethod
    def validate_code_format(code: str) -> bool:
        """At least six characters, upper-case letters and digits only."""
        normalized = code.upper()
        return len(normalized) >= MIN_CODE_LENGTH and bool(CODE_FORMAT.match(normalized))

    # =========================================================================
    # Application
    # =========================================================================

    async def apply_referral_code(self, code: str, new_user_id: str) -> dict[str, Any]:
        """
        Redeem ``code`` for a newly registered user.

        Checks run in a fixed order and the first failure is reported:
        unknown code, inactive, expired, usage cap reached, own code.

        Returns:
            ``{"success": True, "reward": ReferralReward}`` or
            ``{"success": False, "error": message}``.
        """
        db_client = get_db_client()
        codes = db_client.get_referral_codes_collection()
        ctx = add_log_context(self.logger, code=code.upper(), user_id=new_user_id)

        document = await codes.find_one({"code": code.upper()})
        if document is None:
            return {"success": False, "error": "Invalid referral code"}

        referral_code = ReferralCode.model_validate(document)
        error: str | None = None
        if not referral_code.is_active:
            error = "Referral code is no longer active"
        elif referral_code.expires_at and _as_utc(referral_code.expires_at) < datetime.now(UTC):
            error = "Referral code has expired"
        elif referral_code.max_uses and referral_code.current_uses >= referral_code.max_uses:
            error = "Referral code has reached maximum uses"
        elif referral_code.user_id == new_user_id:
            error = "Cannot use your own referral code"

        if error:
            ctx.info("Referral code rejected: %s", error)
            return {"success": False, "error": error}

        # The usage slot is claimed atomically so concurrent redemptions cannot
        # push current_uses past max_uses.
        claim: dict[str, Any] = {"_id": referral_code.id, "is_active": True}
        if referral_code.max_uses:
            claim["current_uses"] = {"$lt": referral_code.max_uses}
        claimed = await codes.update_one(claim, {"$inc": {"current_uses": 1}})
        if claimed.modified_count == 0:
            error = (
                "Referral code has reached maximum uses"
                if referral_code.max_uses
                else "Referral code is no longer active"
            )
            ctx.info("Referral code rejected: %s", error)
            return {"success": False, "error": error}

        reward = ReferralReward(
            _id=_new_id("reward"),
            referrer_id=referral_code.user_id,
            referee_id=new_user_id,
            referral_code_id=referral_code.id,
            reward_type=referral_code.reward_type,
            reward_value=referral_code.reward_value,
        )
        try:
            await db_client.get_referral_rewards_collection().insert_one(
                reward.model_dump(by_alias=True)
            )
        except PyMongoError:
            await codes.update_one({"_id": referral_code.id}, {"$inc": {"current_uses": -1}})
            raise

        ctx.info("Referral code applied; reward %s pending", reward.id)
        return {"success": True, "reward": reward}

    # =========================================================================
    # Rewards
    # =========================================================================

    async def get_user_rewards(
        self, user_id: str, status: RewardStatus | None = None
    ) -> list[ReferralReward]:
        """Rewards earned by ``user_id`` as referrer, optionally filtered by status."""
        query: dict[str, Any] = {"referrer_id": user_id}
        if status is not None:
            query["status"] = status.value
        cursor = get_db_client().get_referral_rewards_collection().find(query)
        return [ReferralReward.model_validate(doc) for doc in await cursor.to_list(length=None)]

    async def process_rewards(self, reward_ids: list[str]) -> dict[str, Any]:
        """
        Pay out pending rewards.

        Each reward is handled independently; failures are counted and
        described in ``errors`` without stopping the batch.

        Returns:
            ``{"processed": int, "failed": int, "errors": [str]}``
        """
        db_client = get_db_client()
        rewards = db_client.get_referral_rewards_collection()
        credits = db_client.get_user_credits_collection()

        processed = 0
        errors: list[str] = []

        for reward_id in reward_ids:
            try:
                # Claiming pending -> paid first means a reward is credited once
                # even when two payouts race.
                document = await rewards.find_one_and_update(
                    {"_id": reward_id, "status": RewardStatus.PENDING.value},
                    {"$set": {"status": RewardStatus.PAID.value, "paid_at": datetime.now(UTC)}},
                    return_document=ReturnDocument.AFTER,
                )
                if document is None:
                    if await rewards.count_documents({"_id": reward_id}, limit=1):
                        errors.append(f"Reward {reward_id} is not in pending status")
                    else:
                        errors.append(f"Reward {reward_id} not found")
                    continue

                reward = ReferralReward.model_validate(document)
                credit = UserCredit(
                    user_id=reward.referrer_id,
                    kind=REWARD_CREDIT_KINDS[RewardType(reward.reward_type)],
                    value=reward.reward_value,
                    source_reward_id=reward.id,
                )
                try:
                    await credits.insert_one(credit.model_dump())
                except PyMongoError:
                    await rewards.update_one(
                        {"_id": reward_id, "status": RewardStatus.PAID.value},
                        {"$set": {"status": RewardStatus.PENDING.value, "paid_at": None}},
                    )
                    raise
                processed += 1
            except PyMongoError as e:
                self.logger.exception("Failed to process reward %s", reward_id)
                errors.append(f"Failed to process reward {reward_id}: {e}")

        self.logger.info("Processed %d rewards, %d failed", processed, len(errors))
        return {"processed": processed, "failed": len(errors), "errors": errors}

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_referral_stats(self, user_id: str) -> dict[str, Any]:
        """
        Programme summary for one referrer.

        Earnings count paid rewards; pending earnings count pending and
        approved ones. Monthly buckets are keyed ``YYYY-MM`` by reward
        creation date.
        """
        rewards = await self.get_user_rewards(user_id)
        codes = await self.get_user_codes(user_id)

        total_referrals = len(rewards)
        successful = [r for r in rewards if r.status in ("approved", "paid")]
        total_earnings = sum(r.reward_value for r in rewards if r.status == "paid")
        pending_earnings = sum(r.reward_value for r in rewards if r.status in ("pending", "approved"))
        conversion_rate = len(successful) / total_referrals * 100 if total_referrals else 0.0

        top_code = max(codes, key=lambda c: c.current_uses, default=None)

        monthly: dict[str, dict[str, Any]] = defaultdict(lambda: {"referrals": 0, "earnings": 0.0})
        for reward in rewards:
            bucket = monthly[_as_utc(reward.created_at).strftime("%Y-%m")]
            bucket["referrals"] += 1
            if reward.status == "paid":
                bucket["earnings"] += reward.reward_value

        return {
            "total_referrals": total_referrals,
            "successful_referrals": len(successful),
            "total_earnings": total_earnings,
            "pending_earnings": pending_earnings,
            "conversion_rate": conversion_rate,
            "top_referral_code": top_code.code if top_code and top_code.current_uses else "",
            "monthly_stats": [{"month": month, **monthly[month]} for month in sorted(monthly)],
        }

    async def get_leaderboard(self, limit: int = 10) -> list[dict[str, Any]]:
        """Top referrers by paid earnings, ranked from 1."""
        pipeline: list[dict[str, Any]] = [
            {
                "$group": {
                    "_id": "$referrer_id",
                    "total_referrals": {"$sum": 1},
                    "total_earnings": {
                        "$sum": {
                            "$cond": [
                                {"$eq": ["$status", RewardStatus.PAID.value]},
                                "$reward_value",
                                0,
                            ]
                        }
                    },
                }
            },
            {"$sort": {"total_earnings": -1, "total_referrals": -1}},
            {"$limit": limit},
        ]
        cursor = get_db_client().get_referral_rewards_collection().aggregate(pipeline)
        rows = await cursor.to_list(length=limit)
        return [
            {
                "user_id": row["_id"],
                "total_referrals": row["total_referrals"],
                "total_earnings": row["total_earnings"],
                "rank": rank,
            }
            for rank, row in enumerate(rows, start=1)
        ]

    # =========================================================================
    # Sharing
    # =========================================================================

    def generate_referral_link(self, code: str, base_url: str | None = None) -> dict[str, Any]:
        """Web link with ``?ref=`` plus prefilled share URLs for social networks."""
        web_link = f"{base_url or self.settings.referral_base_url}?ref={code}"
        message = SHARE_MESSAGE.format(code=code)
        return {
            "web_link": web_link,
            "social_links": {
                "twitter": (
                    f"https://twitter.com/intent/tweet?text={_encode(message)}"
                    f"&url={_encode(web_link)}"
                ),
                "facebook": f"https://www.facebook.com/sharer/sharer.php?u={_encode(web_link)}",
                "linkedin": (
                    f"https://www.linkedin.com/sharing/share-offsite/?url={_encode(web_link)}"
                ),
                "whatsapp": f"https://wa.me/?text={_encode(message + ' ' + web_link)}",
            },
        }


def get_referral_engine() -> ReferralEngine:
    """Dependency provider for referral routes."""
    return ReferralEngine()
