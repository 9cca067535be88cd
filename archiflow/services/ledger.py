"""Per-user credit accounting on top of the ``users/{uid}`` records."""

from dataclasses import dataclass
from typing import Any, Mapping

from ..errors import AccountNotFound, InsufficientCredits
from ..utils.logging import get_logger
from .database import Database

logger = get_logger(__name__)

USERS_COLLECTION = "users"


@dataclass(frozen=True)
class CreditAccount:
    credits_total: int
    credits_used: int

    @property
    def available(self) -> int:
        return max(0, self.credits_total - self.credits_used)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], default_total: int) -> "CreditAccount":
        total = record.get("creditsTotal")
        used = record.get("creditsUsed")
        return cls(
            credits_total=default_total if total is None else int(total),
            credits_used=0 if used is None else int(used),
        )


@dataclass(frozen=True)
class Debit:
    uid: str
    amount: int
    account: CreditAccount

    @property
    def remaining(self) -> int:
        return self.account.available


class CreditLedger:
    """Reads and debits credit accounts.

    A user with no record at all is denied with AccountNotFound. A record
    without ``creditsTotal`` gets ``default_total``.
    """

    def __init__(self, database: Database, default_total: int = 100):
        self.database = database
        self.default_total = default_total

    def _path(self, uid: str) -> str:
        return f"{USERS_COLLECTION}/{uid}"

    def get_account(self, uid: str) -> CreditAccount | None:
        record = self.database.get(self._path(uid))
        if record is None:
            return None
        return CreditAccount.from_record(record, self.default_total)

    def debit(self, uid: str, amount: int) -> Debit:
        """Consume ``amount`` credits with a conditional write. Never refunds."""
        if amount < 1:
            raise ValueError("amount must be a positive integer")

        def apply(record):
            if record is None:
                raise AccountNotFound(uid)
            account = CreditAccount.from_record(record, self.default_total)
            if account.available < amount:
                raise InsufficientCredits(available=account.available, required=amount)
            updated = dict(record)
            updated["creditsUsed"] = account.credits_used + amount
            return updated

        try:
            record = self.database.transaction(self._path(uid), apply)
        except InsufficientCredits as exc:
            logger.info("Debit refused", uid=uid, available=exc.available, required=amount)
            raise

        debit = Debit(uid=uid, amount=amount, account=CreditAccount.from_record(record, self.default_total))
        logger.info("Credits debited", uid=uid, amount=amount, remaining=debit.remaining)
        return debit
