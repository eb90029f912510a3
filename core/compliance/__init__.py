"""Compliance log: business events mirrored to the ledger, plus the local audit trail."""

from .log import ComplianceLog, ETHEREUM_ADDRESS_PATTERN

__all__ = ["ComplianceLog", "ETHEREUM_ADDRESS_PATTERN"]
