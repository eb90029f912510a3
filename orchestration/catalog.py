"""Workflow catalog - every workflow the executor can run.

Reward formulas, reputation thresholds and derived-id templates are
per-workflow constants declared here.
"""

import hashlib
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from core.domain.enums import ComplianceEventType as Event
from core.domain.enums import ComplianceModule as Module
from core.domain.errors import InvalidState, NotFound, Unauthorized
from core.domain.events import utc_now_iso
from core.domain.repositories import Record

from .models import WorkflowContext
from .workflow import (
    AggregateUpdateStep,
    AuditStep,
    Builder,
    ExternalCallStep,
    PersistStep,
    Requirement,
    ValidateStep,
    WorkflowDefinition,
    WorkflowRegistry,
)

# Pulse points per donated resource unit
DONATION_REWARD_RATE = 10

MIN_CONVERSATION_REPUTATION = 10
DASHBOARD_SHARE_REPUTATION = 0.3
AGENT_INITIAL_REPUTATION = 50
OFFER_PURCHASE_REPUTATION = 1
OFFER_TTL = timedelta(hours=24)


def hash_password(password: str) -> str:
    """0x-prefixed SHA-256 of a UTF-8 password."""
    return "0x" + hashlib.sha256(password.encode("utf-8")).hexdigest()


def _chain(value: dict[str, Any]) -> str:
    return "ethereum" if value.get("assetType") == "ETH" else "polkadot"


def _same_address(a: Any, b: Any) -> bool:
    return isinstance(a, str) and isinstance(b, str) and a.lower() == b.lower()


def _child_id(ctx: WorkflowContext, name: str) -> str:
    """Id of an entry pushed into the primary record, supplied or fresh."""
    return ctx.inputs.setdefault(name, str(uuid.uuid4()))


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# COMPUTING / PULSE
# =============================================================================

def donation_reward(ctx: WorkflowContext) -> int:
    return math.floor(ctx.inputs["resource"]["amount"] * DONATION_REWARD_RATE)


COMPUTING_DONATION = WorkflowDefinition(
    name="computing-donation",
    description="Record a computing resource donation and reward the donor with pulse points",
    input_schema="computing-donation",
    output_schema="computing-donation-output",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="donations",
            id_field="donationId",
            build=lambda ctx: {
                "sid": ctx.inputs["sid"],
                "resource": ctx.inputs["resource"],
                "status": "recorded",
            },
        ),
        AggregateUpdateStep(
            collection="pulse",
            key_field="sid",
            key=lambda ctx: ctx.inputs["sid"],
            field="pulseScore",
            amount=donation_reward,
            output="pulseReward",
        ),
        AuditStep(Event.DONATION_RECORDED, Module.COMPUTING, ("donationId", "pulseReward")),
    ),
)

PULSE_QUEST = WorkflowDefinition(
    name="pulse-quest",
    description="Complete a quest and add its reward to the pulse score",
    input_schema="pulse-quest",
    output_schema="pulse-quest-output",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="quests",
            id_field="questId",
            build=lambda ctx: {
                "sid": ctx.inputs["sid"],
                "type": ctx.inputs["quest"]["type"],
                "reward": ctx.inputs["quest"]["reward"],
                "status": "completed",
            },
        ),
        AggregateUpdateStep(
            collection="pulse",
            key_field="sid",
            key=lambda ctx: ctx.inputs["sid"],
            field="pulseScore",
            amount=lambda ctx: ctx.inputs["quest"]["reward"],
            result_output="pulseScore",
        ),
        AuditStep(Event.QUEST_COMPLETED, Module.PULSE, ("questId", "pulseScore")),
    ),
)

PULSE_SCORE = WorkflowDefinition(
    name="pulse-score",
    description="Read the pulse score of a subject",
    input_schema="pulse-score",
    steps=(
        ValidateStep(requirements=(Requirement("pulse", "sid", "sid", "pulse"),)),
    ),
    outputs=lambda ctx: {
        "sid": ctx.inputs["sid"],
        "pulseScore": ctx.entities["pulse"].get("pulseScore", 0),
    },
)


# =============================================================================
# VOUCHERS
# =============================================================================

def _check_password(voucher: Record, ctx: WorkflowContext) -> None:
    if voucher.get("passwordHash") != hash_password(ctx.inputs["password"]):
        raise Unauthorized("Invalid voucher password", {"voucherId": voucher.get("voucherId")})


def guard_transfer(voucher: Record, ctx: WorkflowContext) -> None:
    if voucher.get("status") != "created":
        raise InvalidState(
            "Voucher not transferable",
            {"voucherId": voucher.get("voucherId"), "status": voucher.get("status")},
        )
    _check_password(voucher, ctx)


def guard_redeem(voucher: Record, ctx: WorkflowContext) -> None:
    if voucher.get("status") == "redeemed":
        raise InvalidState("Voucher already redeemed", {"voucherId": voucher.get("voucherId")})
    _check_password(voucher, ctx)


VOUCHER_CREATE = WorkflowDefinition(
    name="voucher-create",
    description="Create a password-protected voucher",
    input_schema="voucher-create",
    output_schema="voucher-create-output",
    actor_field="actor",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="vouchers",
            id_field="voucherId",
            record_schema="voucher-record",
            build=lambda ctx: {
                "creatorSID": ctx.inputs["creatorSID"],
                "value": ctx.inputs["value"],
                "passwordHash": hash_password(ctx.inputs["password"]),
                "status": "created",
                "transferHistory": [],
            },
        ),
        ExternalCallStep(
            method="createVoucher",
            params=lambda ctx: [
                ctx.entity_id,
                ctx.inputs["creatorSID"],
                ctx.inputs["value"],
                ctx.record["passwordHash"],
                _chain(ctx.inputs["value"]),
            ],
        ),
        AuditStep(Event.VOUCHER_CREATED, Module.VOUCHER, ("voucherId", "status")),
    ),
    outputs=lambda ctx: {"status": "created"},
)

VOUCHER_TRANSFER = WorkflowDefinition(
    name="voucher-transfer",
    description="Transfer a created voucher to another holder",
    input_schema="voucher-transfer",
    actor_field="actor",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="vouchers",
            id_field="voucherId",
            mode="update",
            record_schema="voucher-record",
            guard=guard_transfer,
            build=lambda ctx: {
                "$set": {"status": "transferred", "holderSID": ctx.inputs["toSID"]},
                "$push": {
                    "transferHistory": {
                        "fromSID": ctx.inputs["fromSID"],
                        "toSID": ctx.inputs["toSID"],
                        "timestamp": utc_now_iso(),
                    }
                },
            },
        ),
        ExternalCallStep(
            method="transferVoucher",
            params=lambda ctx: [
                ctx.entity_id,
                ctx.inputs["fromSID"],
                ctx.inputs["toSID"],
                hash_password(ctx.inputs["password"]),
            ],
        ),
        AuditStep(Event.VOUCHER_TRANSFERRED, Module.VOUCHER, ("voucherId", "status")),
    ),
    outputs=lambda ctx: {"status": "transferred"},
)

VOUCHER_REDEEM = WorkflowDefinition(
    name="voucher-redeem",
    description="Redeem a voucher",
    input_schema="voucher-redeem",
    actor_field="actor",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="vouchers",
            id_field="voucherId",
            mode="update",
            record_schema="voucher-record",
            guard=guard_redeem,
            build=lambda ctx: {
                "$set": {
                    "status": "redeemed",
                    "redeemedBy": ctx.inputs["redeemerSID"],
                    "redeemedAt": utc_now_iso(),
                }
            },
        ),
        ExternalCallStep(
            method="redeemVoucher",
            params=lambda ctx: [
                ctx.entity_id,
                ctx.inputs["redeemerSID"],
                hash_password(ctx.inputs["password"]),
            ],
        ),
        AuditStep(Event.VOUCHER_REDEEMED, Module.VOUCHER, ("voucherId", "status")),
    ),
    outputs=lambda ctx: {"status": "redeemed"},
)


# =============================================================================
# ADVERTISING / MARKET
# =============================================================================

AD_CREATE = WorkflowDefinition(
    name="ad-create",
    description="Publish an ad and distribute its revenue pool to opted-in users",
    input_schema="ad-create",
    actor_field="actor",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="ads",
            id_field="adId",
            build=lambda ctx: {
                "creatorSID": ctx.inputs["creatorSID"],
                "content": ctx.inputs["adContent"],
                "revenuePool": ctx.inputs["revenuePool"],
                "optInUsers": ctx.inputs.get("optInUsers", []),
                "status": "active",
            },
        ),
        ExternalCallStep(
            method="distributeRevenue",
            params=lambda ctx: [
                ctx.entity_id,
                ctx.inputs["revenuePool"],
                ctx.inputs.get("optInUsers", []),
                _chain(ctx.inputs["revenuePool"]),
            ],
        ),
        AuditStep(Event.AD_CREATED, Module.ADVERTISING, ("adId", "transactionId")),
    ),
)

MARKET_CREATE = WorkflowDefinition(
    name="market-create",
    description="Open a market",
    input_schema="market-create",
    actor_field="owner",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="markets",
            id_field="marketId",
            record_schema="market-record",
            build=lambda ctx: {
                "title": ctx.inputs["title"],
                "owner": ctx.inputs["owner"],
                "allowUserListings": ctx.inputs["market"]["allowUserListings"],
                "karmaWage": ctx.inputs["market"]["karmaWage"],
                "feeStructure": ctx.inputs["market"].get("feeStructure", {}),
                "status": "open",
            },
        ),
        ExternalCallStep(
            method="registerMarket",
            params=lambda ctx: [ctx.entity_id, ctx.inputs["owner"], ctx.inputs["title"]],
        ),
        AuditStep(Event.MARKET_CREATED, Module.MARKET, ("marketId", "transactionId")),
    ),
)


def check_market_accepts_listings(market: Record, ctx: WorkflowContext) -> None:
    if not market.get("allowUserListings"):
        raise InvalidState(
            "User listings not allowed in this market",
            {"marketId": market.get("marketId")},
        )


def build_offer(ctx: WorkflowContext) -> dict[str, Any]:
    expiry = ctx.inputs.get("expiry") or (datetime.now(timezone.utc) + OFFER_TTL).isoformat()
    return {
        "marketId": ctx.inputs["marketId"],
        "agent": ctx.inputs["agent"],
        "soulboundId": ctx.inputs["soulboundId"],
        "title": ctx.inputs["title"],
        "price": ctx.inputs["price"],
        "currency": ctx.inputs["currency"],
        "accessPayload": ctx.inputs.get("accessPayload", {}),
        "verified": False,
        "expiry": expiry,
        "status": "listed",
    }


MARKET_OFFER_CREATE = WorkflowDefinition(
    name="market-offer-create",
    description="List an offer in a market that accepts user listings",
    input_schema="market-offer-create",
    actor_field="agent",
    credential_field="soulboundId",
    steps=(
        ValidateStep(
            identity=True,
            requirements=(
                Requirement("markets", "marketId", "marketId", "market", check_market_accepts_listings),
            ),
        ),
        PersistStep(
            collection="offers",
            id_field="offerId",
            record_schema="offer-record",
            build=build_offer,
        ),
        ExternalCallStep(
            method="registerOffer",
            params=lambda ctx: [
                ctx.entity_id,
                ctx.inputs["marketId"],
                ctx.inputs["agent"],
                ctx.inputs["price"],
                ctx.inputs["currency"],
            ],
        ),
        AggregateUpdateStep(
            collection="reputation",
            key_field="subject",
            key=lambda ctx: ctx.inputs["agent"].lower(),
            field="karma",
            amount=lambda ctx: ctx.entities["market"].get("karmaWage", 0),
            output="karmaWage",
        ),
        AuditStep(
            Event.OFFER_CREATED,
            Module.MARKET,
            ("offerId", "transactionId"),
            soulbound_field="soulboundId",
        ),
    ),
)


def _check_offer_in_market(offer: Record, ctx: WorkflowContext) -> None:
    if offer.get("marketId") != ctx.inputs["marketId"]:
        raise NotFound(
            f"offer {offer.get('offerId')} not found in market {ctx.inputs['marketId']}",
            {"offerId": offer.get("offerId"), "marketId": ctx.inputs["marketId"]},
        )
    if offer.get("status") != "listed":
        raise InvalidState(
            "Offer is no longer listed",
            {"offerId": offer.get("offerId"), "status": offer.get("status")},
        )


def check_offer_purchasable(offer: Record, ctx: WorkflowContext) -> None:
    _check_offer_in_market(offer, ctx)
    if not offer.get("verified"):
        raise InvalidState("Offer not verified", {"offerId": offer.get("offerId")})
    if _parse_time(offer["expiry"]) <= datetime.now(timezone.utc):
        raise InvalidState(
            "Offer expired",
            {"offerId": offer.get("offerId"), "expiry": offer["expiry"]},
        )


MARKET_OFFER_VERIFY = WorkflowDefinition(
    name="market-offer-verify",
    description="Mark a listed offer as verified so it can be purchased",
    input_schema="market-offer-verify",
    actor_field="verifier",
    steps=(
        ValidateStep(requirements=(Requirement("markets", "marketId", "marketId", "market"),)),
        PersistStep(
            collection="offers",
            id_field="offerId",
            mode="update",
            record_schema="offer-record",
            guard=_check_offer_in_market,
            build=lambda ctx: {"$set": {"verified": True, "verifiedAt": utc_now_iso()}},
        ),
        ExternalCallStep(
            method="updateOffer",
            params=lambda ctx: [ctx.entity_id, ctx.inputs["marketId"], {"verified": True}],
        ),
        AuditStep(Event.OFFER_VERIFIED, Module.MARKET, ("offerId", "transactionId")),
    ),
    outputs=lambda ctx: {"verified": True},
)

MARKET_OFFER_PURCHASE = WorkflowDefinition(
    name="market-offer-purchase",
    description="Buy a verified offer; rewards the agent and pays the buyer the market's karma wage",
    input_schema="market-offer-purchase",
    actor_field="buyerId",
    credential_field="buyerSoulboundId",
    steps=(
        ValidateStep(
            identity=True,
            requirements=(
                Requirement("markets", "marketId", "marketId", "market"),
                Requirement("offers", "offerId", "offerId", "offer", check_offer_purchasable),
            ),
        ),
        PersistStep(
            collection="purchases",
            id_field="purchaseId",
            build=lambda ctx: {
                "offerId": ctx.inputs["offerId"],
                "marketId": ctx.inputs["marketId"],
                "buyerId": ctx.inputs["buyerId"],
                "agent": ctx.entities["offer"]["agent"],
                "price": ctx.entities["offer"]["price"],
                "currency": ctx.entities["offer"]["currency"],
                "status": "completed",
            },
        ),
        ExternalCallStep(
            method="processPayment",
            params=lambda ctx: [
                ctx.entity_id,
                ctx.inputs["buyerId"],
                ctx.entities["offer"]["agent"],
                ctx.entities["offer"]["price"],
                ctx.entities["offer"]["currency"],
                ctx.entities["market"].get("feeStructure", {}),
            ],
        ),
        AggregateUpdateStep(
            collection="reputation",
            key_field="subject",
            key=lambda ctx: ctx.entities["offer"]["agent"].lower(),
            field="score",
            amount=lambda ctx: OFFER_PURCHASE_REPUTATION,
        ),
        AggregateUpdateStep(
            collection="reputation",
            key_field="subject",
            key=lambda ctx: ctx.inputs["buyerId"].lower(),
            field="karma",
            amount=lambda ctx: ctx.entities["market"].get("karmaWage", 0),
            output="karmaWage",
        ),
        AuditStep(
            Event.OFFER_PURCHASED,
            Module.MARKET,
            ("purchaseId", "offerId", "transactionId"),
            soulbound_field="buyerSoulboundId",
        ),
    ),
    outputs=lambda ctx: {
        "offerId": ctx.inputs["offerId"],
        "accessPayload": ctx.entities["offer"].get("accessPayload", {}),
    },
)


# =============================================================================
# FEED
# =============================================================================

def guard_post_owner(post: Record, ctx: WorkflowContext) -> None:
    if not _same_address(post.get("userId"), ctx.actor):
        raise Unauthorized("Only the post owner can update it", {"postId": post.get("postId")})


def build_post_update(ctx: WorkflowContext) -> dict[str, Any]:
    return {
        "$set": {
            **ctx.inputs["updates"],
            "status": "edited",
            "updatedAt": utc_now_iso(),
        }
    }


FEED_POST = WorkflowDefinition(
    name="feed-post",
    description="Publish a post to a feed channel",
    input_schema="feed-post",
    actor_field="userId",
    credential_field="soulboundId",
    steps=(
        ValidateStep(identity=True),
        PersistStep(
            collection="posts",
            id_field="postId",
            record_schema="post-record",
            build=lambda ctx: {
                "userId": ctx.inputs["userId"],
                "soulboundId": ctx.inputs["soulboundId"],
                "channel": ctx.inputs["channel"],
                "content": ctx.inputs["payload"]["content"],
                "metadata": ctx.inputs["payload"].get("metadata", {}),
                "comments": [],
                "reactions": [],
                "status": "published",
            },
        ),
        ExternalCallStep(
            method="registerPost",
            params=lambda ctx: [ctx.entity_id, ctx.inputs["userId"], ctx.inputs["channel"]],
        ),
        AuditStep(
            Event.POST_PUBLISHED,
            Module.FEED,
            ("postId", "transactionId"),
            soulbound_field="soulboundId",
        ),
    ),
)

FEED_UPDATE_POST = WorkflowDefinition(
    name="feed-update-post",
    description="Edit a post (owner only)",
    input_schema="feed-update-post",
    actor_field="userId",
    credential_field="soulboundId",
    steps=(
        ValidateStep(identity=True),
        PersistStep(
            collection="posts",
            id_field="postId",
            mode="update",
            record_schema="post-record",
            guard=guard_post_owner,
            build=build_post_update,
        ),
        ExternalCallStep(
            method="updatePost",
            params=lambda ctx: [ctx.entity_id, ctx.inputs["userId"], ctx.inputs["updates"]],
        ),
        AuditStep(
            Event.POST_UPDATED,
            Module.FEED,
            ("postId", "transactionId"),
            soulbound_field="soulboundId",
        ),
    ),
)


def comment_entry(ctx: WorkflowContext) -> dict[str, Any]:
    return {
        "id": _child_id(ctx, "commentId"),
        "userId": ctx.inputs["userId"],
        "content": ctx.inputs["comment"],
    }


def reaction_entry(ctx: WorkflowContext) -> dict[str, Any]:
    return {
        "id": _child_id(ctx, "reactionId"),
        "userId": ctx.inputs["userId"],
        "type": ctx.inputs["reaction"],
    }


def _push_to_post(field: str, entry: Builder) -> Builder:
    def build(ctx: WorkflowContext) -> dict[str, Any]:
        now = utc_now_iso()
        return {
            "$push": {field: {**entry(ctx), "createdAt": now}},
            "$set": {"updatedAt": now},
        }
    return build


FEED_COMMENT = WorkflowDefinition(
    name="feed-comment",
    description="Comment on a post",
    input_schema="feed-comment",
    actor_field="userId",
    credential_field="soulboundId",
    steps=(
        ValidateStep(identity=True),
        PersistStep(
            collection="posts",
            id_field="postId",
            mode="update",
            record_schema="post-record",
            build=_push_to_post("comments", comment_entry),
        ),
        ExternalCallStep(
            method="registerComment",
            params=lambda ctx: [ctx.entity_id, comment_entry(ctx)],
        ),
        AuditStep(
            Event.COMMENT_ADDED,
            Module.FEED,
            ("postId", "commentId", "transactionId"),
            soulbound_field="soulboundId",
        ),
    ),
    outputs=lambda ctx: {"commentId": ctx.inputs["commentId"]},
)

FEED_REACT = WorkflowDefinition(
    name="feed-react",
    description="React to a post",
    input_schema="feed-react",
    actor_field="userId",
    credential_field="soulboundId",
    steps=(
        ValidateStep(identity=True),
        PersistStep(
            collection="posts",
            id_field="postId",
            mode="update",
            record_schema="post-record",
            build=_push_to_post("reactions", reaction_entry),
        ),
        ExternalCallStep(
            method="registerReaction",
            params=lambda ctx: [ctx.entity_id, reaction_entry(ctx)],
        ),
        AuditStep(
            Event.REACTION_ADDED,
            Module.FEED,
            ("postId", "reactionId", "reaction", "transactionId"),
            soulbound_field="soulboundId",
        ),
    ),
    outputs=lambda ctx: {"reactionId": ctx.inputs["reactionId"], "reaction": ctx.inputs["reaction"]},
)


# =============================================================================
# CASINO
# =============================================================================

def check_game_active(game: Record, ctx: WorkflowContext) -> None:
    if game.get("status") != "active":
        raise InvalidState("Game is not accepting bets", {"gameId": game.get("gameId")})


CASINO_CREATE_GAME = WorkflowDefinition(
    name="casino-create-game",
    description="Create a casino game",
    input_schema="casino-create-game",
    actor_field="userId",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="games",
            id_field="gameId",
            record_schema="game-record",
            build=lambda ctx: {
                "gameType": ctx.inputs["gameType"],
                "parameters": ctx.inputs.get("parameters", {}),
                "creator": ctx.inputs["userId"],
                "status": "active",
                "pot": 0,
            },
        ),
        AuditStep(Event.GAME_CREATED, Module.CASINO, ("gameId",)),
    ),
)

CASINO_PLACE_BET = WorkflowDefinition(
    name="casino-place-bet",
    description="Place a bet on an active game",
    input_schema="casino-place-bet",
    actor_field="userId",
    steps=(
        ValidateStep(
            requirements=(Requirement("games", "gameId", "gameId", "game", check_game_active),),
        ),
        PersistStep(
            collection="bets",
            id_field="betId",
            build=lambda ctx: {
                "gameId": ctx.inputs["gameId"],
                "userId": ctx.inputs["userId"],
                "amount": ctx.inputs["amount"],
                "selection": ctx.inputs.get("selection"),
                "status": "placed",
            },
        ),
        AggregateUpdateStep(
            collection="games",
            key_field="gameId",
            key=lambda ctx: ctx.inputs["gameId"],
            field="pot",
            amount=lambda ctx: ctx.inputs["amount"],
            result_output="pot",
        ),
        AuditStep(Event.BET_PLACED, Module.CASINO, ("betId", "gameId")),
    ),
)


def guard_game_resolvable(game: Record, ctx: WorkflowContext) -> None:
    if game.get("status") != "active":
        raise InvalidState(
            "Game is not active",
            {"gameId": game.get("gameId"), "status": game.get("status")},
        )


CASINO_RESOLVE_GAME = WorkflowDefinition(
    name="casino-resolve-game",
    description="Resolve an active game; no further bets are accepted",
    input_schema="casino-resolve-game",
    actor_field="userId",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="games",
            id_field="gameId",
            mode="update",
            record_schema="game-record",
            guard=guard_game_resolvable,
            build=lambda ctx: {
                "$set": {
                    "status": "resolved",
                    "resolvedBy": ctx.inputs["userId"],
                    "outcome": ctx.inputs.get("outcome"),
                    "resolvedAt": utc_now_iso(),
                }
            },
        ),
        AuditStep(Event.GAME_RESOLVED, Module.CASINO, ("gameId", "status")),
    ),
    outputs=lambda ctx: {"status": "resolved", "pot": ctx.record.get("pot", 0)},
)


# =============================================================================
# MESSAGING / RITUAL
# =============================================================================

MESSAGING_START_CONVERSATION = WorkflowDefinition(
    name="messaging-start-conversation",
    description="Start a conversation (requires a minimum reputation)",
    input_schema="messaging-start-conversation",
    actor_field="creator",
    steps=(
        ValidateStep(min_reputation=MIN_CONVERSATION_REPUTATION),
        PersistStep(
            collection="conversations",
            id_field="conversationId",
            build=lambda ctx: {
                "platformId": ctx.inputs["platformId"],
                "creator": ctx.inputs["creator"],
                "participants": ctx.inputs["participants"],
                "soulboundIds": ctx.inputs.get("soulboundIds", []),
                "messageType": ctx.inputs.get("messageType", "direct"),
                "groupId": ctx.inputs.get("groupId"),
                "messages": [],
                "status": "open",
            },
        ),
        AuditStep(Event.CONVERSATION_STARTED, Module.MESSAGING, ("platformId", "conversationId")),
    ),
    outputs=lambda ctx: {"platformId": ctx.inputs["platformId"]},
)

RITUAL_INITIATE = WorkflowDefinition(
    name="ritual-initiate",
    description="Initiate a ritual",
    input_schema="ritual-initiate",
    output_schema="ritual-initiate-output",
    actor_field="initiator",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="rituals",
            id_field="id",
            derived_ids={"ritualId": "ritual_{id}"},
            build=lambda ctx: {
                "ritualType": ctx.inputs["ritualType"],
                "initiator": ctx.inputs["initiator"],
                "participants": ctx.inputs.get("participants", []),
                "parameters": ctx.inputs.get("parameters", {}),
                "status": "initiated",
            },
        ),
        ExternalCallStep(
            method="initiateRitual",
            params=lambda ctx: [
                ctx.derived_ids["ritualId"],
                ctx.inputs["ritualType"],
                ctx.inputs.get("participants", []),
            ],
        ),
        AuditStep(Event.RITUAL_INITIATED, Module.RITUAL, ("ritualId", "transactionId")),
    ),
    outputs=lambda ctx: {"status": "initiated"},
)


# =============================================================================
# DASHBOARDS / AGENTS
# =============================================================================

def guard_dashboard_share(dashboard: Record, ctx: WorkflowContext) -> None:
    if not _same_address(dashboard.get("owner"), ctx.actor):
        raise Unauthorized(
            "Only the dashboard owner can share it",
            {"dashboardId": dashboard.get("dashboardId")},
        )
    target = ctx.inputs["targetUser"]
    if any(_same_address(user, target) for user in dashboard.get("sharedWith", [])):
        raise InvalidState(
            "Dashboard already shared with this user",
            {"dashboardId": dashboard.get("dashboardId"), "targetUser": target},
        )


DASHBOARD_CREATE = WorkflowDefinition(
    name="dashboard-create",
    description="Create a dashboard",
    input_schema="dashboard-create",
    actor_field="owner",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="dashboards",
            id_field="dashboardId",
            build=lambda ctx: {
                "owner": ctx.inputs["owner"],
                "title": ctx.inputs["title"],
                "layout": ctx.inputs.get("layout", {"columns": 12}),
                "widgets": ctx.inputs.get("widgets", []),
                "sharedWith": [],
                "status": "active",
            },
        ),
        AuditStep(Event.DASHBOARD_CREATED, Module.DASHBOARDS, ("dashboardId",)),
    ),
)

DASHBOARD_SHARE = WorkflowDefinition(
    name="dashboard-share",
    description="Share a dashboard with another user (owner only)",
    input_schema="dashboard-share",
    actor_field="owner",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="dashboards",
            id_field="dashboardId",
            mode="update",
            guard=guard_dashboard_share,
            build=lambda ctx: {"$push": {"sharedWith": ctx.inputs["targetUser"]}},
        ),
        AggregateUpdateStep(
            collection="reputation",
            key_field="subject",
            key=lambda ctx: ctx.inputs["owner"].lower(),
            field="score",
            amount=lambda ctx: DASHBOARD_SHARE_REPUTATION,
            output="reputationDelta",
        ),
        AuditStep(Event.DASHBOARD_SHARED, Module.DASHBOARDS, ("dashboardId", "targetUser")),
    ),
    outputs=lambda ctx: {"targetUser": ctx.inputs["targetUser"]},
)

AGENT_CREATE = WorkflowDefinition(
    name="agent-create",
    description="Register an agent",
    input_schema="agent-create",
    actor_field="owner",
    steps=(
        ValidateStep(),
        PersistStep(
            collection="agents",
            id_field="agentId",
            record_schema="agent-record",
            build=lambda ctx: {
                "owner": ctx.inputs["owner"],
                "type": ctx.inputs["type"],
                "username": ctx.inputs["username"],
                "description": ctx.inputs.get("description", ""),
                "reputation_score": AGENT_INITIAL_REPUTATION,
                "status": "active",
            },
        ),
        AuditStep(Event.AGENT_CREATED, Module.AGENTS, ("agentId",)),
    ),
)


WORKFLOWS = (
    COMPUTING_DONATION,
    PULSE_QUEST,
    PULSE_SCORE,
    VOUCHER_CREATE,
    VOUCHER_TRANSFER,
    VOUCHER_REDEEM,
    AD_CREATE,
    MARKET_CREATE,
    MARKET_OFFER_CREATE,
    MARKET_OFFER_VERIFY,
    MARKET_OFFER_PURCHASE,
    FEED_POST,
    FEED_UPDATE_POST,
    FEED_COMMENT,
    FEED_REACT,
    CASINO_CREATE_GAME,
    CASINO_PLACE_BET,
    CASINO_RESOLVE_GAME,
    MESSAGING_START_CONVERSATION,
    RITUAL_INITIATE,
    DASHBOARD_CREATE,
    DASHBOARD_SHARE,
    AGENT_CREATE,
)


def build_workflow_registry() -> WorkflowRegistry:
    """Registry holding every catalog workflow."""
    return WorkflowRegistry(WORKFLOWS)
