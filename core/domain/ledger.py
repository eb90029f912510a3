"""
Ledger Adapter Interface (Domain Layer).

Pure interface definition - no implementation details.
The ledger is an opaque, append-only external service: every call
either commits and yields a transaction id, or fails.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class LedgerReceipt:
    """Outcome of a ledger call."""
    
    success: bool
    transaction_id: Optional[str] = None
    error: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.transaction_id is not None:
            data["transactionId"] = self.transaction_id
        if self.error is not None:
            data["error"] = self.error
        return data


class LedgerAdapter(ABC):
    """
    Ledger Adapter Interface.
    
    Architecture:
    - Domain interface (no implementation)
    - Implemented in infrastructure layer (HTTP gateway, in-memory fallback)
    - Consumed by the workflow executor and the compliance log
    
    Implementations report failures through LedgerReceipt rather than
    raising, but callers must still treat exceptions as failures.
    """
    
    @abstractmethod
    async def submit(self, method: str, params: List[Any]) -> LedgerReceipt:
        """
        Submit a domain operation to the ledger.
        
        Args:
            method: Contract-level method name (e.g. "createVoucher")
            params: Ordered parameter list, primary id first
        
        Returns:
            Receipt with transaction id or error
        """
        pass
    
    @abstractmethod
    async def log_event(self, event_id: str, event_data: Dict[str, Any]) -> LedgerReceipt:
        """
        Mirror a compliance event to the ledger.
        
        Args:
            event_id: Compliance event id
            event_data: Serialized compliance event
        
        Returns:
            Receipt with transaction id or error
        """
        pass
    
    @abstractmethod
    async def verify_identity(self, subject_id: str, credential_id: str) -> bool:
        """
        Verify a soulbound credential belongs to a subject.
        
        Args:
            subject_id: Account address
            credential_id: Soulbound credential id
        
        Returns:
            True if the credential is valid for the subject
        """
        pass
    
    @abstractmethod
    async def get_reputation_score(self, subject_id: str) -> float:
        """
        Get the on-ledger reputation score of a subject.
        
        Args:
            subject_id: Account address
        
        Returns:
            Reputation score
        """
        pass
