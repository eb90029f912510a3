"""
Compliance Enums.

Fixed vocabularies for compliance events and audit log entries.
A compliance event outside these sets is rejected.
"""
from enum import Enum


class ComplianceEventType(str, Enum):
    """Business actions that produce a compliance event."""
    
    # Feed
    POST_PUBLISHED = "post_published"
    COMMENT_ADDED = "comment_added"
    REACTION_ADDED = "reaction_added"
    POST_UPDATED = "post_updated"
    
    # Market
    MARKET_CREATED = "market_created"
    OFFER_CREATED = "offer_created"
    OFFER_VERIFIED = "offer_verified"
    OFFER_PURCHASED = "offer_purchased"
    
    # Identity
    USER_REGISTERED = "user_registered"
    PROFILE_UPDATED = "profile_updated"
    
    # Oracle
    DATA_SUBMITTED = "data_submitted"
    DATA_VALIDATED = "data_validated"
    
    # Casino
    GAME_CREATED = "game_created"
    BET_PLACED = "bet_placed"
    GAME_RESOLVED = "game_resolved"
    
    # Ritual / governance
    RITUAL_INITIATED = "ritual_initiated"
    PROPOSAL_SUBMITTED = "proposal_submitted"
    
    # Computing / pulse
    DONATION_RECORDED = "donation_recorded"
    QUEST_COMPLETED = "quest_completed"
    
    # Vouchers
    VOUCHER_CREATED = "voucher_created"
    VOUCHER_TRANSFERRED = "voucher_transferred"
    VOUCHER_REDEEMED = "voucher_redeemed"
    
    # Advertising, messaging, dashboards, agents
    AD_CREATED = "ad_created"
    CONVERSATION_STARTED = "conversation_started"
    DASHBOARD_CREATED = "dashboard_created"
    DASHBOARD_SHARED = "dashboard_shared"
    AGENT_CREATED = "agent_created"


class ComplianceModule(str, Enum):
    """Module a compliance event originates from."""
    
    FEED = "feed"
    MARKET = "market"
    IDENTITY = "identity"
    ORACLE = "oracle"
    CASINO = "casino"
    RITUAL = "ritual"
    GOVERNANCE = "governance"
    COMPUTING = "computing"
    PULSE = "pulse"
    VOUCHER = "voucher"
    ADVERTISING = "advertising"
    MESSAGING = "messaging"
    DASHBOARDS = "dashboards"
    AGENTS = "agents"


class AuditAction(str, Enum):
    """Executor-internal outcomes written to the audit log."""
    
    EVENT_VALIDATION = "event_validation"
    BLOCKCHAIN_SUBMISSION = "blockchain_submission"
    PERSISTENCE = "persistence"
    AGGREGATE_UPDATE = "aggregate_update"
    IDENTITY_VERIFICATION = "identity_verification"
    ERROR_HANDLING = "error_handling"
    WORKFLOW_EXECUTION = "workflow_execution"


# Exactly one of these closes every workflow invocation
TERMINAL_AUDIT_ACTIONS = frozenset({
    AuditAction.ERROR_HANDLING,
    AuditAction.WORKFLOW_EXECUTION,
})
