from __future__ import annotations

from config.defaults import NOTIFICATION_SOURCE
from vault.client import StoreUnavailable
from vault.client import VaultClient


class NotifiedSetStore:
    """
    Durable set of already-announced item ids, kept in the secrets service.

    load() fails open to an empty set and save() returns False instead of raising;
    a missed save is caught up by the next one since every write is the full set.
    """

    def __init__(self, *, vault: VaultClient, source: str = NOTIFICATION_SOURCE) -> None:
        self.vault = vault
        self.source = str(source or NOTIFICATION_SOURCE)
        self.load_failures = 0
        self.save_failures = 0

    async def load(self) -> set[str]:
        try:
            if not await self.vault.wait_until_ready():
                raise StoreUnavailable("load", "secrets service did not become healthy")
            ids = await self.vault.get_notified_ids(self.source)
        except Exception as e:
            self.load_failures += 1
            print(f"[Vault] action=load source={self.source} result=degraded fallback=empty_set error={str(e)[:160]}")
            return set()
        print(f"[Vault] action=load source={self.source} result=ok count={len(ids)}")
        return set(ids)

    async def save(self, ids: set[str]) -> bool:
        snapshot = sorted(ids)
        try:
            if not await self.vault.wait_until_ready():
                raise StoreUnavailable("save", "secrets service did not become healthy")
            await self.vault.save_notified_ids(snapshot, self.source)
        except Exception as e:
            self.save_failures += 1
            print(
                f"[Vault] action=save source={self.source} result=degraded count={len(snapshot)} "
                f"retry=next_cycle error={str(e)[:160]}"
            )
            return False
        print(f"[Vault] action=save source={self.source} result=ok count={len(snapshot)}")
        return True
