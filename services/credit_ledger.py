# ============================================================================
# CREDIT LEDGER SERVICE
# ============================================================================
# STATUS: Service - Credit reservation lifecycle
# PURPOSE: Reserve / refund / commit with a scoped refund guard
# EXPORTS: CreditLedger, ReservationGuard
# DEPENDENCIES: psycopg, infrastructure.credit_repository, core.logic.transitions
# ============================================================================
"""
Credit Ledger Service.

Every successful reserve must reach exactly one terminal status. Callers do
not refund by hand; they run the billable work inside reservation_guard():

    with ledger.reservation_guard(user_id, 1) as guard:
        ...                       # any exception -> one refund, then re-raised
                                  # normal exit   -> commit

A failure to reserve (InsufficientCredit) raises before the block runs, so
there is nothing to refund.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg

from util_logger import LoggerFactory, ComponentType, operator_alert
from core.errors import ErrorCode
from core.logic.transitions import can_reservation_transition
from core.models.credit import CreditReservation
from core.models.enums import ReservationStatus
from exceptions import BusinessLogicError, ContractViolationError, RefundFailure

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "CreditLedger")


class ReservationGuard:
    """
    Handle yielded by reservation_guard().

    Tracks the reservation's local status so the guard never settles twice.
    """

    def __init__(self, reservation: CreditReservation):
        self.reservation = reservation
        self.status = ReservationStatus.RESERVED
        self.refund_error: Optional[BaseException] = None
        self.commit_error: Optional[BaseException] = None

    @property
    def reservation_id(self) -> str:
        return self.reservation.reservation_id

    @property
    def amount(self) -> int:
        return self.reservation.amount

    @property
    def settled(self) -> bool:
        return self.status != ReservationStatus.RESERVED

    def _transition(self, target: ReservationStatus) -> None:
        if not can_reservation_transition(self.status, target):
            raise ContractViolationError(
                f"Reservation {self.reservation_id} cannot move {self.status.value} -> {target.value}"
            )
        self.status = target


class CreditLedger:
    """
    Credit reservation lifecycle on top of CreditRepository.

    Usage:
        ledger = CreditLedger()
        with ledger.reservation_guard(user_id, 1) as guard:
            do_billable_work()
    """

    def __init__(self, repository=None):
        if repository is None:
            from infrastructure.factory import RepositoryFactory
            repository = RepositoryFactory.create_credit_repository()
        self.repository = repository

    def reserve(self, user_id: str, amount: int) -> CreditReservation:
        """
        Raises:
            InsufficientCredit: Balance cannot cover amount
        """
        return self.repository.reserve(user_id, amount)

    def refund(self, reservation: CreditReservation) -> bool:
        """
        Refund a reservation.

        Callers must refund at most once; a repeat returns False.

        Raises:
            RefundFailure: Storage failure while restoring credits
        """
        try:
            return self.repository.refund(reservation)
        except (BusinessLogicError, RuntimeError, psycopg.Error) as e:
            raise RefundFailure(
                f"Refund of {reservation.reservation_id} failed: {e}",
                reservation_id=reservation.reservation_id,
                user_id=reservation.user_id
            ) from e

    def commit(self, reservation: CreditReservation) -> bool:
        return self.repository.commit(reservation)

    def get_balance(self, user_id: str) -> int:
        return self.repository.get_balance(user_id)

    @contextmanager
    def reservation_guard(self, user_id: str, amount: int) -> Iterator[ReservationGuard]:
        """
        Reserve, run the block, then refund once on failure or commit on success.

        The original exception always propagates. A failed refund is logged
        CRITICAL with an operator alert and recorded on guard.refund_error;
        it never replaces the original exception.

        A failed commit after successful work is logged and recorded on
        guard.commit_error. The debit already happened at reserve time, so
        the user's balance is correct and the work is not reported as failed.
        """
        reservation = self.reserve(user_id, amount)
        guard = ReservationGuard(reservation)

        try:
            yield guard
        except BaseException as exc:
            self._refund_once(guard, exc)
            raise
        else:
            self._commit_once(guard)

    def _refund_once(self, guard: ReservationGuard, cause: BaseException) -> None:
        if guard.settled:
            return
        guard._transition(ReservationStatus.REFUNDED)
        cause_code = getattr(cause, 'error_code', None)
        try:
            self.refund(guard.reservation)
            logger.info(
                f"↩️ Refunded reservation {guard.reservation_id} after {type(cause).__name__}",
                extra={'custom_dimensions': {
                    'reservation_id': guard.reservation_id,
                    'cause_error_code': cause_code.value if isinstance(cause_code, ErrorCode) else None,
                }}
            )
        except RefundFailure as refund_error:
            guard.refund_error = refund_error
            logger.critical(
                f"🚨 Refund failed for reservation {guard.reservation_id}: {refund_error}",
                extra=operator_alert(
                    reservation_id=guard.reservation_id,
                    user_id=guard.reservation.user_id,
                    amount=guard.amount,
                    cause=type(cause).__name__,
                )
            )

    def _commit_once(self, guard: ReservationGuard) -> None:
        guard._transition(ReservationStatus.COMMITTED)
        try:
            self.commit(guard.reservation)
        except (BusinessLogicError, RuntimeError, psycopg.Error) as commit_error:
            guard.commit_error = commit_error
            logger.error(
                f"❌ Could not mark reservation {guard.reservation_id} committed: {commit_error}",
                extra=operator_alert(reservation_id=guard.reservation_id)
            )


__all__ = ['CreditLedger', 'ReservationGuard']
