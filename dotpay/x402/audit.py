"""
Audit logging for x402 payments.

This module records payment events for:
- Dispute resolution
- Financial reconciliation
- Debugging rejected payments

Log format: JSON lines (one event per line)
Log location: Configured via X402_AUDIT_LOG_PATH
Enabled by: X402_AUDIT_ENABLED

Events logged:
- 402 returned (price, network, recipient, resource)
- Payment received (payer, amount, nonce)
- Payment verified (all pipeline checks passed)
- Payment settled (facilitator outcome, block/extrinsic hashes)
- Payment failed (error code, HTTP status)
- Error (type, context)

Write failures are logged, never raised.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotpay.core.config import settings

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events that can be logged."""
    PAYMENT_REQUIRED_SENT = "payment_required_sent"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_SETTLED = "payment_settled"
    PAYMENT_FAILED = "payment_failed"
    ERROR = "error"


def generate_request_id() -> str:
    """Generate a short request ID for correlating events."""
    return str(uuid.uuid4())[:8]


def get_audit_log_path() -> Path:
    return Path(settings.X402_AUDIT_LOG_PATH)


def create_audit_event(
    event_type: AuditEventType,
    data: Dict[str, Any],
    client_ip: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create an audit event dictionary.

    Args:
        event_type: Type of event to log
        data: Event-specific data
        client_ip: Client IP address (if available)
        wallet_address: Payer SS58 address (if available)
        request_id: Request identifier shared by related events

    Returns:
        A structured event ready to be written to the audit log
    """
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type.value,
        "request_id": request_id or generate_request_id(),
        "client_ip": client_ip,
        "wallet_address": wallet_address,
        "data": data
    }


def log_audit_event(
    event_type: AuditEventType,
    data: Dict[str, Any],
    client_ip: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """
    Append an event to the audit log.

    Returns:
        The request_id used for this event, or None if auditing is disabled
        or the write failed
    """
    if not settings.X402_AUDIT_ENABLED:
        return None

    event = create_audit_event(
        event_type=event_type,
        data=data,
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )

    try:
        log_path = get_audit_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            f.write(json.dumps(event) + "\n")

        logger.debug(f"Audit event logged: {event_type.value} [{event['request_id']}]")
        return event["request_id"]

    except OSError as e:
        logger.error(f"Failed to write audit event: {e}")
        return None


def log_payment_required_sent(
    client_ip: str,
    amount: str,
    network: str,
    pay_to: str,
    resource: str,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a 402 Payment Required response event."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_REQUIRED_SENT,
        data={
            "amount": amount,
            "network": network,
            "pay_to": pay_to,
            "resource": resource,
        },
        client_ip=client_ip,
        request_id=request_id
    )


def log_payment_received(
    client_ip: str,
    payer: str,
    amount: str,
    nonce: str,
    network: str,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log an admitted payment."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_RECEIVED,
        data={
            "amount": amount,
            "nonce": nonce,
            "network": network,
        },
        client_ip=client_ip,
        wallet_address=payer,
        request_id=request_id
    )


def log_payment_verified(
    client_ip: str,
    payer: str,
    confirmed_on_chain: Optional[bool],
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a payment that passed every validation check."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_VERIFIED,
        data={
            "verified": True,
            "confirmed_on_chain": confirmed_on_chain,
        },
        client_ip=client_ip,
        wallet_address=payer,
        request_id=request_id
    )


def log_payment_settled(
    client_ip: str,
    payer: str,
    success: bool,
    network: str,
    block_hash: Optional[str] = None,
    extrinsic_hash: Optional[str] = None,
    error_reason: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a facilitator settlement event."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_SETTLED,
        data={
            "success": success,
            "network": network,
            "block_hash": block_hash,
            "extrinsic_hash": extrinsic_hash,
            "error_reason": error_reason,
        },
        client_ip=client_ip,
        wallet_address=payer,
        request_id=request_id
    )


def log_payment_failed(
    client_ip: str,
    reason: str,
    code: str,
    status_code: int,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a rejected payment."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_FAILED,
        data={
            "reason": reason,
            "code": code,
            "status_code": status_code,
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def log_error(
    client_ip: str,
    error_type: str,
    error_message: str,
    context: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log an error event."""
    return log_audit_event(
        event_type=AuditEventType.ERROR,
        data={
            "error_type": error_type,
            "error_message": error_message,
            "context": context or {},
        },
        client_ip=client_ip,
        request_id=request_id
    )


def read_audit_log(
    max_entries: Optional[int] = 100,
    event_type: Optional[AuditEventType] = None,
    wallet_address: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Read entries from the audit log.

    Args:
        max_entries: Maximum number of entries to return (None for all)
        event_type: Filter by event type (optional)
        wallet_address: Filter by payer (optional)

    Returns:
        List of audit events (most recent first)
    """
    log_path = get_audit_log_path()
    if not log_path.exists():
        return []

    events = []
    try:
        with open(log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if event_type and event.get("event_type") != event_type.value:
                    continue
                if wallet_address and event.get("wallet_address") != wallet_address:
                    continue
                events.append(event)
    except OSError as e:
        logger.error(f"Failed to read audit log: {e}")
        return []

    return list(reversed(events))[:max_entries]


def get_audit_stats() -> Dict[str, Any]:
    """
    Summarize the audit log.

    Returns:
        Dict with event counts by type and the first/last timestamps
    """
    log_path = get_audit_log_path()
    stats: Dict[str, Any] = {
        "total_events": 0,
        "events_by_type": {},
        "first_event": None,
        "last_event": None,
        "log_path": str(log_path),
        "log_exists": log_path.exists(),
    }
    # read_audit_log returns newest first
    events = read_audit_log(max_entries=None) if stats["log_exists"] else []
    for event in events:
        event_type = event.get("event_type", "unknown")
        stats["events_by_type"][event_type] = stats["events_by_type"].get(event_type, 0) + 1
    if events:
        stats["total_events"] = len(events)
        stats["last_event"] = events[0].get("timestamp")
        stats["first_event"] = events[-1].get("timestamp")
    return stats
