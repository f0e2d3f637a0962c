"""trx_import.dimensions

Natural-key → surrogate-id resolution for the two dimension tables.

  customer_id     → user_profile.id
  account_number  → account.id

Resolution order per key:
  1.  Cache hit → return (no I/O)
  2.  Atomic insert-if-absent keyed by the natural unique constraint
  3.  Read back id by natural key; absent → DependencyResolutionError
  4.  Stage the id in the cache and return it

Cache entries resolved inside a transaction are staged and promoted only
when the caller commits; a rollback discards them, because the rows they
point to no longer exist.
"""

from __future__ import annotations

import logging
from typing import Protocol

import psycopg

from trx_import.shared import DependencyResolutionError

log = logging.getLogger(__name__)

IMPORTED_NAME_PREFIX = "IMPORTED-"
IMPORTED_EMAIL_DOMAIN = "import.local"


class DimensionStore(Protocol):
    def upsert_user_profile(self, customer_id: str, full_name: str, email: str) -> bool:
        ...

    def find_user_profile_id(self, customer_id: str) -> int | None:
        ...

    def upsert_account(self, account_number: str, user_profile_id: int) -> bool:
        ...

    def find_account_id(self, account_number: str) -> int | None:
        ...


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class _StagedMap:
    def __init__(self) -> None:
        self._committed: dict[str, int] = {}
        self._staged: dict[str, int] = {}

    def get(self, key: str) -> int | None:
        if key in self._staged:
            return self._staged[key]
        return self._committed.get(key)

    def stage(self, key: str, value: int) -> None:
        self._staged[key] = value

    def commit(self) -> None:
        self._committed.update(self._staged)
        self._staged.clear()

    def discard(self) -> None:
        self._staged.clear()

    def __len__(self) -> int:
        return len(self._committed)


class DimensionCache:
    """Run-scoped id maps.  Created empty per run; never persisted."""

    def __init__(self) -> None:
        self.user_profiles = _StagedMap()
        self.accounts = _StagedMap()

    def commit(self) -> None:
        self.user_profiles.commit()
        self.accounts.commit()

    def discard(self) -> None:
        self.user_profiles.discard()
        self.accounts.discard()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

def synthetic_full_name(customer_id: str) -> str:
    return f"{IMPORTED_NAME_PREFIX}{customer_id}"


def synthetic_email(customer_id: str) -> str:
    return f"{customer_id}@{IMPORTED_EMAIL_DOMAIN}"


class DimensionResolver:
    def __init__(self, store: DimensionStore, cache: DimensionCache) -> None:
        self._store = store
        self._cache = cache

    def resolve_user_profile(self, customer_id: str) -> int:
        cached = self._cache.user_profiles.get(customer_id)
        if cached is not None:
            return cached

        try:
            created = self._store.upsert_user_profile(
                customer_id,
                synthetic_full_name(customer_id),
                synthetic_email(customer_id),
            )
            profile_id = self._store.find_user_profile_id(customer_id)
        except psycopg.Error as exc:
            log.error(
                "[SQL] user_profile upsert/select failed customerId=%s root=%s",
                customer_id, exc,
            )
            raise DependencyResolutionError(
                f"Error processing user_profile for customerId={customer_id}: {exc}"
            ) from exc

        if profile_id is None:
            raise DependencyResolutionError(
                f"user_profile upsert succeeded but id not found for customerId={customer_id}"
            )
        if created:
            log.debug("[DIM] user_profile created customerId=%s id=%s", customer_id, profile_id)
        self._cache.user_profiles.stage(customer_id, profile_id)
        return profile_id

    def resolve_account(self, account_number: str, user_profile_id: int) -> int:
        cached = self._cache.accounts.get(account_number)
        if cached is not None:
            return cached

        try:
            created = self._store.upsert_account(account_number, user_profile_id)
            account_id = self._store.find_account_id(account_number)
        except psycopg.Error as exc:
            log.error(
                "[SQL] account upsert/select failed accountNumber=%s root=%s",
                account_number, exc,
            )
            raise DependencyResolutionError(
                f"Error processing account for accountNumber={account_number}: {exc}"
            ) from exc

        if account_id is None:
            raise DependencyResolutionError(
                f"account upsert succeeded but id not found for accountNumber={account_number}"
            )
        if created:
            log.debug(
                "[DIM] account created accountNumber=%s id=%s userProfileId=%s",
                account_number, account_id, user_profile_id,
            )
        self._cache.accounts.stage(account_number, account_id)
        return account_id
