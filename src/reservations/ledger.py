import logging
import secrets
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from src.reservations.clock import utc_now
from src.reservations.exceptions import AlreadySettled, InvalidAmount
from src.reservations.schemas import (
    LedgerEntry, LedgerEntryStatus, PaymentMethodType, PaymentStatus, round_money
)

logger = logging.getLogger(__name__)


def generate_transaction_id(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(4).upper()}"


class PaymentLedger:
    """Signed payment history of one reservation.

    Charges are positive entries and refunds negative ones; both live in the
    same list so that every derived amount is a single fold over Completed
    entries. The ledger mutates the list it was given.
    """

    def __init__(self, entries: List[LedgerEntry], total: Decimal):
        self.entries = entries
        self.total = round_money(total)

    def total_paid(self) -> Decimal:
        """Net amount of all Completed entries"""
        return round_money(sum(
            (entry.amount for entry in self.entries if entry.status == LedgerEntryStatus.COMPLETED),
            Decimal('0')
        ))

    def total_refunded(self) -> Decimal:
        return round_money(-sum(
            (entry.amount for entry in self.entries
             if entry.status == LedgerEntryStatus.COMPLETED and entry.amount < 0),
            Decimal('0')
        ))

    def remaining_balance(self) -> Decimal:
        return max(Decimal('0.00'), round_money(self.total - self.total_paid()))

    def has_refunds(self) -> bool:
        return any(
            entry.amount < 0 and entry.status == LedgerEntryStatus.COMPLETED
            for entry in self.entries
        )

    def payment_status(self) -> PaymentStatus:
        paid = self.total_paid()

        if self.has_refunds():
            return PaymentStatus.REFUNDED if paid <= 0 else PaymentStatus.PARTIALLY_REFUNDED

        if paid <= 0:
            return PaymentStatus.UNPAID
        if paid >= self.total:
            return PaymentStatus.PAID
        return PaymentStatus.PARTIALLY_PAID

    def add_payment(
        self,
        amount,
        method: PaymentMethodType = PaymentMethodType.OTHER,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> LedgerEntry:
        """Record a completed charge supplied by the payment collaborator"""
        try:
            amount = round_money(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidAmount(f"Invalid payment amount: {amount!r}", amount=str(amount))

        if amount <= 0:
            raise InvalidAmount("Payment amount must be positive", amount=str(amount))

        if self.payment_status() == PaymentStatus.PAID:
            raise AlreadySettled(
                "Reservation is already fully paid",
                total=str(self.total),
                total_paid=str(self.total_paid())
            )

        remaining = self.remaining_balance()
        entry = LedgerEntry(
            id=str(uuid.uuid4()),
            amount=amount,
            method=method,
            transaction_id=transaction_id or generate_transaction_id("PAY"),
            status=LedgerEntryStatus.COMPLETED,
            flagged=amount > remaining,
            created_at=now or utc_now()
        )

        if entry.flagged:
            logger.warning(
                "Payment %s of %s exceeds remaining balance %s",
                entry.transaction_id, amount, remaining
            )

        self.entries.append(entry)
        return entry

    def add_refund(
        self,
        amount,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> LedgerEntry:
        """Record a completed refund as a negative entry"""
        amount = round_money(amount)
        if amount <= 0:
            raise InvalidAmount("Refund amount must be positive", amount=str(amount))

        entry = LedgerEntry(
            id=str(uuid.uuid4()),
            amount=-amount,
            method=PaymentMethodType.REFUND,
            transaction_id=transaction_id or generate_transaction_id("REF"),
            status=LedgerEntryStatus.COMPLETED,
            created_at=now or utc_now()
        )
        self.entries.append(entry)
        return entry
