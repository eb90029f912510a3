"""
HTTP Ledger Adapter Implementation.

Talks to a ledger gateway over a JSON-RPC style HTTP endpoint.
"""
from typing import Any, Dict, List, Optional
import asyncio
import itertools
import logging
import aiohttp

from core.domain.ledger import LedgerAdapter, LedgerReceipt
from core.settings import LedgerSettings


logger = logging.getLogger(__name__)


class LedgerGatewayError(Exception):
    """Raised when the gateway cannot answer a read call."""
    pass


class HttpLedgerAdapter(LedgerAdapter):
    """
    Gateway implementation of LedgerAdapter.
    
    Request:  POST {rpc_url}  {"jsonrpc": "2.0", "id": n, "method": ..., "params": [...]}
    Response: {"result": {...}} or {"error": {"message": ...}}
    
    Write calls never raise: transport errors, gateway errors and
    timeouts all come back as LedgerReceipt(success=False).
    """
    
    def __init__(self, settings: LedgerSettings):
        """
        Initialize HTTP ledger adapter.
        
        Args:
            settings: Ledger settings with gateway URL and timeout
        """
        if not settings.rpc_url:
            raise ValueError("LEDGER_RPC_URL is required for HttpLedgerAdapter")
        self.rpc_url = settings.rpc_url
        self.api_key = settings.api_key
        self.timeout = aiohttp.ClientTimeout(total=settings.timeout_seconds)
        self._ids = itertools.count(1)
        logger.info(f"HttpLedgerAdapter initialized: {self.rpc_url}")
    
    async def submit(self, method: str, params: List[Any]) -> LedgerReceipt:
        return await self._write(method, list(params))
    
    async def log_event(self, event_id: str, event_data: Dict[str, Any]) -> LedgerReceipt:
        return await self._write(
            "logEvent",
            [event_id, event_data.get("eventType"), event_data.get("userId"), event_data],
        )
    
    async def verify_identity(self, subject_id: str, credential_id: str) -> bool:
        result = await self._read("verifySoulboundId", [subject_id, credential_id])
        return bool(result)
    
    async def get_reputation_score(self, subject_id: str) -> float:
        result = await self._read("getReputation", [subject_id])
        return float(result or 0)
    
    async def _write(self, method: str, params: List[Any]) -> LedgerReceipt:
        try:
            result = await self._call(method, params)
        except asyncio.TimeoutError:
            logger.error(f"{method} timed out after {self.timeout.total}s")
            return LedgerReceipt(success=False, error=f"{method} timed out")
        except (aiohttp.ClientError, LedgerGatewayError) as e:
            logger.error(f"{method} failed: {e}")
            return LedgerReceipt(success=False, error=str(e))
        
        if isinstance(result, dict):
            transaction_id = result.get("transactionHash") or result.get("transactionId")
        else:
            transaction_id = str(result) if result is not None else None
        
        if not transaction_id:
            return LedgerReceipt(success=False, error=f"{method} returned no transaction id")
        return LedgerReceipt(success=True, transaction_id=transaction_id)
    
    async def _read(self, method: str, params: List[Any]) -> Any:
        try:
            return await self._call(method, params)
        except asyncio.TimeoutError as e:
            raise LedgerGatewayError(f"{method} timed out") from e
        except aiohttp.ClientError as e:
            raise LedgerGatewayError(f"{method} failed: {e}") from e
    
    async def _call(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        headers: Optional[Dict[str, str]] = None
        if self.api_key:
            headers = {"Authorization": f"Bearer {self.api_key}"}
        
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.rpc_url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LedgerGatewayError(f"Gateway error: {response.status} - {error_text}")
                body = await response.json()
        
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise LedgerGatewayError(message or "Unknown gateway error")
        return body.get("result")
