"""
Per-account cache of store clients.

A migration host talks to many containers on few accounts. ClientPool
keeps one StoreAccount per account name so that every job reading from
(or writing to) the same account shares its connections. Account names are
matched case-insensitively.

Pools are plain objects passed to whoever needs them; a host typically
holds one pool for source accounts and one for destination accounts.

Example:
    >>> pool = ClientPool(lambda name: InMemoryStoreAccount(name))
    >>> a = pool.get_or_create("Contoso")
    >>> b = pool.get_or_create("contoso")
    >>> a is b
    True
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from feedmigrate.exceptions import MigrationError
from feedmigrate.stores.interface import DocumentContainer, StoreAccount

logger = logging.getLogger(__name__)

StoreAccountFactory = Callable[[str], StoreAccount]


class ClientPool:
    """
    Thread-safe, case-insensitive cache of StoreAccount instances.

    Args:
        factory: Creates a StoreAccount for an account name. Called at most
            once per (case-folded) name.
    """

    def __init__(self, factory: StoreAccountFactory) -> None:
        self._factory = factory
        self._accounts: dict[str, StoreAccount] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(account_name: str) -> str:
        return account_name.casefold()

    def get_or_create(self, account_name: str) -> StoreAccount:
        """Return the cached account for a name, creating it on first use."""
        if not account_name:
            raise ValueError("account_name must not be empty")

        key = self._key(account_name)
        with self._lock:
            account = self._accounts.get(key)
            if account is None:
                account = self._factory(account_name)
                self._accounts[key] = account
                logger.debug("Created store client for account %s", account_name)
            return account

    def get_container(
        self,
        account_name: str | None,
        database: str | None,
        container: str | None,
        *,
        job_id: str | None = None,
    ) -> DocumentContainer:
        """
        Resolve an account/database/container locator to a container.

        Raises:
            MigrationError: If any part of the locator is missing
        """
        if not (account_name and database and container):
            raise MigrationError(
                f"Incomplete container locator {account_name}/{database}/{container}",
                job_id=job_id,
            )
        return self.get_or_create(account_name).get_container(database, container)

    def __contains__(self, account_name: object) -> bool:
        if not isinstance(account_name, str):
            return False
        with self._lock:
            return self._key(account_name) in self._accounts

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)

    async def close(self) -> None:
        """Close and forget every cached account."""
        with self._lock:
            accounts = list(self._accounts.values())
            self._accounts.clear()
        for account in accounts:
            await account.close()


__all__ = ["ClientPool", "StoreAccountFactory"]
