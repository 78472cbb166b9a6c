# ============================================================================
# CREDIT REPOSITORY
# ============================================================================
# STATUS: Infrastructure - Credit reservations against user_credits
# PURPOSE: Atomic reserve / refund / commit of billable credit
# EXPORTS: CreditRepository
# DEPENDENCIES: psycopg, core.models.credit
# ============================================================================
"""
Credit Repository.

A reservation debits credit sources immediately and records which rows were
debited. Refund restores exactly those rows; commit only marks the
reservation final. Both settle a reservation at most once: the status
update is guarded by ``status = 'reserved'`` so a second settle is a no-op.

Debit order: subscription grants first, then top-ups, then anything else;
oldest row first within a plan type.

Tables:
    app.user_credits - credit sources
    app.credit_reservations - reservations and their allocations
"""

import json
import time
import uuid
from typing import List, Dict, Any

import psycopg
from psycopg import sql

from util_logger import LoggerFactory, ComponentType
from config.defaults import CreditDefaults
from core.models.credit import CreditAllocation, CreditReservation
from core.models.enums import ReservationStatus
from exceptions import DatabaseError, InsufficientCredit, ValidationError
from .postgresql import PostgreSQLRepository

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "CreditRepository")


def make_reservation_id(user_id: str) -> str:
    """res_{epoch_ms}_{user_id}_{suffix}; the suffix keeps same-millisecond ids distinct."""
    return f"res_{int(time.time() * 1000)}_{user_id}_{uuid.uuid4().hex[:8]}"


class CreditRepository(PostgreSQLRepository):
    """
    Repository for credit reservations.

    Tables: app.user_credits, app.credit_reservations
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.credits_table = "user_credits"
        self.table = "credit_reservations"
        self.schema = self.schema_name

    # =========================================================================
    # CREATE
    # =========================================================================

    def reserve(self, user_id: str, amount: int) -> CreditReservation:
        """
        Debit ``amount`` credits and record the reservation.

        Locks the user's active credit rows for the transaction so two
        concurrent reservations cannot both spend the same balance.

        Raises:
            ValidationError: amount < 1
            InsufficientCredit: Active balance below amount
            DatabaseError: Database failure
        """
        if amount < 1:
            raise ValidationError(f"Reservation amount must be positive, got {amount}")

        reservation_id = make_reservation_id(user_id)
        priority = CreditDefaults.PLAN_PRIORITY

        with self._error_context("credit reservation", user_id):
            with self._connect("Credit reservation", user_id=user_id) as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(
                            sql.SQL("""
                                SELECT id, credits, plan_type
                                FROM {}.{}
                                WHERE user_id = %s AND status = 'active' AND credits > 0
                                ORDER BY
                                    CASE plan_type
                                        WHEN 'subscription' THEN %s
                                        WHEN 'top_up' THEN %s
                                        ELSE %s
                                    END,
                                    created_at ASC
                                FOR UPDATE
                            """).format(
                                sql.Identifier(self.schema),
                                sql.Identifier(self.credits_table)
                            ),
                            (user_id, priority['subscription'], priority['top_up'], priority['one_time'])
                        )
                        sources = cur.fetchall()

                        available = sum(row['credits'] for row in sources)
                        if available < amount:
                            conn.rollback()
                            raise InsufficientCredit(
                                "Not enough credits.",
                                user_id=user_id,
                                required=amount,
                                available=available
                            )

                        allocations = self._debit_sources(cur, sources, amount)

                        cur.execute(
                            sql.SQL("""
                                INSERT INTO {}.{} (reservation_id, user_id, amount, status, allocations)
                                VALUES (%s, %s, %s, %s, %s)
                                RETURNING *
                            """).format(
                                sql.Identifier(self.schema),
                                sql.Identifier(self.table)
                            ),
                            (
                                reservation_id,
                                user_id,
                                amount,
                                ReservationStatus.RESERVED.value,
                                json.dumps([a.model_dump() for a in allocations]),
                            )
                        )
                        row = cur.fetchone()
                    conn.commit()

                except psycopg.Error as e:
                    conn.rollback()
                    raise DatabaseError(f"Credit reservation failed: {e}", user_id=user_id) from e

        reservation = self._row_to_model(row)
        logger.info(
            f"💳 Reserved {amount} credit(s) for user {user_id}: {reservation_id} "
            f"from {len(allocations)} source(s)"
        )
        return reservation

    # =========================================================================
    # UPDATE
    # =========================================================================

    def refund(self, reservation: CreditReservation) -> bool:
        """
        Restore the debited credits and mark the reservation refunded.

        Each allocation goes back to its source row; an allocation whose row
        is gone is returned to the user's newest active row.

        Returns:
            True if refunded now, False if the reservation was already settled

        Raises:
            DatabaseError: Database failure (credits not restored)
        """
        with self._error_context("credit refund", reservation.reservation_id):
            with self._connect("Credit refund", reservation_id=reservation.reservation_id) as conn:
                try:
                    with conn.cursor() as cur:
                        if not self._settle(cur, reservation.reservation_id, ReservationStatus.REFUNDED):
                            conn.rollback()
                            logger.warning(
                                f"⚠️ Reservation {reservation.reservation_id} already settled; refund skipped"
                            )
                            return False

                        allocations = reservation.allocations or [
                            CreditAllocation(credit_id="", deducted=reservation.amount)
                        ]
                        for allocation in allocations:
                            self._restore(cur, reservation.user_id, allocation)
                    conn.commit()

                except DatabaseError:
                    conn.rollback()
                    raise
                except psycopg.Error as e:
                    conn.rollback()
                    raise DatabaseError(
                        f"Credit refund failed: {e}",
                        reservation_id=reservation.reservation_id
                    ) from e

        logger.info(
            f"↩️ Refunded {reservation.amount} credit(s) to user {reservation.user_id}: "
            f"{reservation.reservation_id}"
        )
        return True

    def commit(self, reservation: CreditReservation) -> bool:
        """
        Finalize a reservation. The debit already happened at reserve time.

        Returns:
            True if committed now, False if already settled

        Raises:
            DatabaseError: Database failure (reservation left reserved)
        """
        with self._error_context("credit commit", reservation.reservation_id):
            with self._connect("Credit commit", reservation_id=reservation.reservation_id) as conn:
                with conn.cursor() as cur:
                    committed = self._settle(cur, reservation.reservation_id, ReservationStatus.COMMITTED)
                conn.commit()

        self._log_operation_result("credit commit", reservation.reservation_id, committed)
        return committed

    # =========================================================================
    # READ
    # =========================================================================

    def get_balance(self, user_id: str) -> int:
        """Sum of active credits for the user."""
        query = sql.SQL("""
            SELECT COALESCE(SUM(credits), 0) AS balance
            FROM {}.{}
            WHERE user_id = %s AND status = 'active'
        """).format(
            sql.Identifier(self.schema),
            sql.Identifier(self.credits_table)
        )
        row = self._execute_query(query, (user_id,), fetch='one')
        return int(row['balance']) if row else 0

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _debit_sources(self, cur, sources: List[Dict[str, Any]], amount: int) -> List[CreditAllocation]:
        remaining = amount
        allocations: List[CreditAllocation] = []
        for source in sources:
            if remaining == 0:
                break
            deducted = min(source['credits'], remaining)
            cur.execute(
                sql.SQL("""
                    UPDATE {}.{}
                    SET credits = credits - %s, updated_at = now()
                    WHERE id = %s
                """).format(
                    sql.Identifier(self.schema),
                    sql.Identifier(self.credits_table)
                ),
                (deducted, source['id'])
            )
            allocations.append(CreditAllocation(credit_id=str(source['id']), deducted=deducted))
            remaining -= deducted
        return allocations

    def _settle(self, cur, reservation_id: str, status: ReservationStatus) -> bool:
        cur.execute(
            sql.SQL("""
                UPDATE {}.{}
                SET status = %s, settled_at = now()
                WHERE reservation_id = %s AND status = %s
            """).format(
                sql.Identifier(self.schema),
                sql.Identifier(self.table)
            ),
            (status.value, reservation_id, ReservationStatus.RESERVED.value)
        )
        return cur.rowcount == 1

    def _restore(self, cur, user_id: str, allocation: CreditAllocation) -> None:
        restored = 0
        if allocation.credit_id:
            cur.execute(
                sql.SQL("""
                    UPDATE {}.{}
                    SET credits = credits + %s, updated_at = now()
                    WHERE id::text = %s
                """).format(
                    sql.Identifier(self.schema),
                    sql.Identifier(self.credits_table)
                ),
                (allocation.deducted, allocation.credit_id)
            )
            restored = cur.rowcount

        if restored == 0:
            cur.execute(
                sql.SQL("""
                    UPDATE {schema}.{table}
                    SET credits = credits + %s, updated_at = now()
                    WHERE id = (
                        SELECT id FROM {schema}.{table}
                        WHERE user_id = %s AND status = 'active'
                        ORDER BY created_at DESC
                        LIMIT 1
                    )
                """).format(
                    schema=sql.Identifier(self.schema),
                    table=sql.Identifier(self.credits_table)
                ),
                (allocation.deducted, user_id)
            )
            if cur.rowcount == 0:
                raise DatabaseError(
                    f"No active credit row to refund {allocation.deducted} credit(s) to",
                    user_id=user_id
                )

    def _row_to_model(self, row: Dict[str, Any]) -> CreditReservation:
        allocations = row.get('allocations') or []
        if isinstance(allocations, str):
            allocations = json.loads(allocations)
        return CreditReservation(
            reservation_id=row['reservation_id'],
            user_id=row['user_id'],
            amount=row['amount'],
            status=row['status'],
            allocations=[CreditAllocation(**a) for a in allocations],
            created_at=row.get('created_at'),
            settled_at=row.get('settled_at'),
        )


__all__ = ['CreditRepository', 'make_reservation_id']
