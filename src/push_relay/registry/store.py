"""Snapshot store — full-file JSON persistence of the subscription set.

Every mutation rewrites the whole file. Writes go to a uniquely named
sibling temp file which is then renamed over the snapshot, so a crash
mid-write leaves the previous snapshot intact. Saves are serialized.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from push_relay.errors.relay_errors import SnapshotError, StoreError
from push_relay.registry.models import Snapshot, SubscriptionRecord

if TYPE_CHECKING:
    from collections.abc import Mapping

    from push_relay.registry.models import Subscription

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Loads and saves registry snapshots on the local filesystem.

    Usage::

        store = SnapshotStore("subscriptions.json")
        subs = await store.load()
        await store.save(subs)
    """

    def __init__(self, path: str | Path, *, write_timeout: float = 5.0) -> None:
        self._path = Path(path)
        self._write_timeout = write_timeout
        self._lock = asyncio.Lock()
        self._write_task: asyncio.Future[None] | None = None

    @property
    def path(self) -> Path:
        """Return the snapshot file path."""
        return self._path

    async def load(self) -> dict[str, Subscription]:
        """Read the snapshot file.

        Returns:
            Device token → Subscription. Empty if the file does not exist.

        Raises:
            SnapshotError: If the file exists but cannot be read or decoded.
        """
        if not self._path.exists():
            logger.info("No snapshot at %s, starting with no subscriptions", self._path)
            return {}

        try:
            raw = await asyncio.to_thread(self._path.read_bytes)
        except OSError as exc:
            raise SnapshotError(f"Cannot read snapshot {self._path}: {exc}") from exc

        try:
            snapshot = Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise SnapshotError(f"Cannot decode snapshot {self._path}: {exc}") from exc

        subscriptions = {
            token: record.to_subscription(token)
            for token, record in snapshot.subscriptions.items()
            if record.addresses
        }
        logger.info("Loaded %d subscriptions from %s", len(subscriptions), self._path)
        return subscriptions

    async def save(self, subscriptions: Mapping[str, Subscription]) -> None:
        """Overwrite the snapshot with the given subscription set.

        Saves run one at a time. The document is built only once the
        previous save has finished, so when *subscriptions* is the live
        registry map the last write to land carries the latest state. A
        write that outlived its timeout is waited for before the next one
        starts.

        Raises:
            StoreError: If the write fails or exceeds ``write_timeout``.
        """
        async with self._lock:
            snapshot = Snapshot(
                subscriptions={
                    token: SubscriptionRecord.from_subscription(sub)
                    for token, sub in subscriptions.items()
                },
            )
            data = snapshot.model_dump_json(by_alias=True, indent=2)

            try:
                await asyncio.wait_for(self._write_after_pending(data), self._write_timeout)
            except TimeoutError as exc:
                raise StoreError(
                    f"Snapshot write to {self._path} timed out after {self._write_timeout}s"
                ) from exc
            except OSError as exc:
                raise StoreError(f"Snapshot write to {self._path} failed: {exc}") from exc

        logger.debug("Saved %d subscriptions to %s", len(snapshot.subscriptions), self._path)

    async def _write_after_pending(self, data: str) -> None:
        pending = self._write_task
        if pending is not None and not pending.done():
            logger.warning("Waiting for an earlier snapshot write to %s to finish", self._path)
            await asyncio.wait({pending})
            if not pending.cancelled() and pending.exception() is not None:
                logger.warning(
                    "Timed-out snapshot write to %s failed: %s", self._path, pending.exception()
                )

        # A timeout abandons the wait, never the thread; the task tracks it.
        self._write_task = asyncio.ensure_future(asyncio.to_thread(self._write, data))
        await asyncio.shield(self._write_task)

    def _write(self, data: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp = Path(fh.name)
                fh.write(data)
            os.replace(tmp, self._path)
        except OSError:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise
