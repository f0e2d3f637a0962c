"""trx_import.processor

Row normalizer: validated CandidateRow → write-ready FactRow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable

from trx_import.dimensions import DimensionResolver
from trx_import.normalize import now_local, trim
from trx_import.shared import Stage, ValidationError
from trx_import.tokenizer import CandidateRow

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactRow:
    account_id: int
    amount: Decimal
    description: str | None
    trx_date: date
    trx_time: time
    customer_id: str
    created_at: datetime
    updated_at: datetime
    version: int = 0
    # Source line, for skip attribution only; not persisted.
    line_number: int | None = None


class RowNormalizer:
    def __init__(
        self,
        resolver: DimensionResolver,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self._resolver = resolver
        self._clock = clock

    def process(self, item: CandidateRow) -> FactRow | None:
        """Return a FactRow, or None when the row is filtered.

        Raises:
            ValidationError: amount/date/time structurally absent (stage PROCESS).
            DependencyResolutionError: dimension id could not be resolved.
        """
        account_number = trim(item.account_number)
        customer_id = trim(item.customer_id)
        if account_number is None or customer_id is None:
            return None

        log.debug(
            "[PROCESS] acct=%s cust=%s amount=%s date=%s time=%s desc=%s",
            account_number, customer_id, item.amount,
            item.trx_date, item.trx_time, item.description,
        )

        if item.amount is None:
            raise ValidationError(
                f"trxAmount is null for account={account_number}",
                Stage.PROCESS,
                missing_fields=("TRX_AMOUNT",),
            )
        if item.trx_date is None or item.trx_time is None:
            raise ValidationError(
                f"trxDate/trxTime is null for account={account_number}",
                Stage.PROCESS,
                missing_fields=tuple(
                    name for name, value in (("TRX_DATE", item.trx_date), ("TRX_TIME", item.trx_time))
                    if value is None
                ),
            )

        user_profile_id = self._resolver.resolve_user_profile(customer_id)
        account_id = self._resolver.resolve_account(account_number, user_profile_id)

        now = self._clock()
        return FactRow(
            account_id=account_id,
            amount=item.amount,
            description=item.description,
            trx_date=item.trx_date,
            trx_time=item.trx_time,
            customer_id=customer_id,
            created_at=now,
            updated_at=now,
            version=0,
            line_number=item.line_number,
        )
