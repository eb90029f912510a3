"""
In-Memory Ledger Adapter Implementation.

Deterministic fallback used for testing and disconnected operation.
"""
from typing import Any, Dict, List, Optional, Set, Tuple
import copy
import logging

from core.domain.ledger import LedgerAdapter, LedgerReceipt


logger = logging.getLogger(__name__)


class InMemoryLedgerAdapter(LedgerAdapter):
    """
    In-memory implementation of LedgerAdapter.
    
    Every call succeeds with a synthetic transaction id derived from the
    operation name and primary id, unless a failure has been forced.
    """
    
    def __init__(self, default_reputation: float = 100.0):
        """
        Initialize in-memory ledger.
        
        Args:
            default_reputation: Score reported for subjects without an explicit one
        """
        self.default_reputation = default_reputation
        self.storage: Dict[str, Any] = {}
        self.calls: List[Tuple[str, List[Any]]] = []
        self._reputation: Dict[str, float] = {}
        self._revoked: Set[Tuple[str, str]] = set()
        self._failure: Optional[str] = None
        self._failing_methods: Optional[Set[str]] = None
        logger.warning("Ledger running in fallback mode: using in-memory storage")
    
    async def submit(self, method: str, params: List[Any]) -> LedgerReceipt:
        self.calls.append((method, copy.deepcopy(list(params))))
        
        failure = self._failure_for(method)
        if failure is not None:
            logger.error(f"{method} failed: {failure}")
            return LedgerReceipt(success=False, error=failure)
        
        primary_id = params[0] if params else None
        if primary_id is None:
            transaction_id = f"tx-{method}"
        else:
            transaction_id = f"tx-{method}-{primary_id}"
        self.storage[f"{method}:{primary_id}"] = copy.deepcopy(list(params))
        return LedgerReceipt(success=True, transaction_id=transaction_id)
    
    async def log_event(self, event_id: str, event_data: Dict[str, Any]) -> LedgerReceipt:
        self.calls.append(("logEvent", [event_id, copy.deepcopy(event_data)]))
        
        failure = self._failure_for("logEvent")
        if failure is not None:
            logger.error(f"logEvent failed: {failure}")
            return LedgerReceipt(success=False, error=failure)
        
        self.storage[f"event:{event_id}"] = copy.deepcopy(event_data)
        return LedgerReceipt(success=True, transaction_id=f"tx-event-{event_id}")
    
    async def verify_identity(self, subject_id: str, credential_id: str) -> bool:
        self.calls.append(("verifyIdentity", [subject_id, credential_id]))
        return (subject_id, credential_id) not in self._revoked
    
    async def get_reputation_score(self, subject_id: str) -> float:
        self.calls.append(("getReputationScore", [subject_id]))
        return self._reputation.get(subject_id, self.default_reputation)
    
    # =========================================================================
    # TEST HOOKS
    # =========================================================================
    
    def force_failure(self, error: str, methods: Optional[Set[str]] = None) -> None:
        """Make submissions fail (all of them, or only the given methods)."""
        self._failure = error
        self._failing_methods = set(methods) if methods else None
    
    def clear_failure(self) -> None:
        self._failure = None
        self._failing_methods = None
    
    def set_reputation(self, subject_id: str, score: float) -> None:
        self._reputation[subject_id] = score
    
    def revoke_identity(self, subject_id: str, credential_id: str) -> None:
        self._revoked.add((subject_id, credential_id))
    
    def calls_to(self, method: str) -> List[List[Any]]:
        """Parameter lists of every call to a method."""
        return [params for name, params in self.calls if name == method]
    
    def _failure_for(self, method: str) -> Optional[str]:
        if self._failure is None:
            return None
        if self._failing_methods is None or method in self._failing_methods:
            return self._failure
        return None
