"""
Ticket numbers and verification payloads.

Ticket numbers are random tokens, not a counter, so concurrent reservations
never contend on a sequence. Barcode and QR payloads are derived
deterministically from the ticket number and the seat identity and carry an
HMAC signature, which lets the door check-in verify a scanned code without
trusting anything else in it.
"""

import hashlib
import hmac
import json
import secrets
from typing import Optional

from boxoffice.core.config import get_settings

settings = get_settings()

TICKET_NUMBER_PREFIX = "TKT-"
_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
_NUMBER_LENGTH = 10
_SIGNATURE_LENGTH = 16


def generate_ticket_number() -> str:
    token = "".join(secrets.choice(_ALPHABET) for _ in range(_NUMBER_LENGTH))
    return f"{TICKET_NUMBER_PREFIX}{token}"


def _seat_identity(
    event_id: int,
    performance_id: int,
    section: Optional[str],
    row: Optional[str],
    seat_number: Optional[str],
) -> str:
    return "-".join(
        str(part) for part in (event_id, performance_id, section or "GA", row or "", seat_number or "")
    )


def _sign(ticket_number: str, identity: str) -> str:
    digest = hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        f"{ticket_number}|{identity}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest[:_SIGNATURE_LENGTH].upper()


def build_barcode(
    ticket_number: str,
    event_id: int,
    performance_id: int,
    section: Optional[str],
    row: Optional[str],
    seat_number: Optional[str],
) -> str:
    identity = _seat_identity(event_id, performance_id, section, row, seat_number)
    return f"{ticket_number}.{_sign(ticket_number, identity)}"


def build_qr_payload(
    ticket_number: str,
    event_id: int,
    performance_id: int,
    category: str,
    section: Optional[str],
    row: Optional[str],
    seat_number: Optional[str],
) -> str:
    identity = _seat_identity(event_id, performance_id, section, row, seat_number)
    payload = {
        "ticket": ticket_number,
        "event": event_id,
        "performance": performance_id,
        "category": category,
        "section": section,
        "row": row,
        "seat": seat_number,
        "sig": _sign(ticket_number, identity),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def ticket_number_from_barcode(barcode: str) -> Optional[str]:
    """Extract the ticket number from a scanned barcode, or None if malformed."""
    ticket_number, sep, signature = barcode.strip().partition(".")
    if not sep or not ticket_number.startswith(TICKET_NUMBER_PREFIX) or not signature:
        return None
    return ticket_number
