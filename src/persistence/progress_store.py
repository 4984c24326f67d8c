"""
Snapshot persistence for in-progress booking flows.

Persistence is best-effort: storage failures are logged and swallowed, and a
snapshot that cannot be trusted (unparseable, wrong schema version, stale) is
deleted and reported as absent.
"""
from typing import TYPE_CHECKING, Optional

from loguru import logger
from pydantic import ValidationError

from config import get_settings
from error_handling.handlers import graceful_degradation
from models.schemas import PersistedSnapshot
from .key_value import KeyValueStore

if TYPE_CHECKING:
    from flow.clock import Clock


class PersistenceStore:
    """
    Reads and writes the flow snapshot under a single storage key.

    All sessions share the key, so concurrent sessions overwrite each other.

    Args:
        storage: Key/value backend
        clock: Time source used for ``savedAt`` and expiry
        key: Storage key (default from settings)
        schema_version: Version written and required on load (default from settings)
        max_age_seconds: Snapshots at least this old are discarded (default from settings)
    """

    def __init__(
        self,
        storage: KeyValueStore,
        clock: "Clock",
        key: Optional[str] = None,
        schema_version: Optional[str] = None,
        max_age_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.storage = storage
        self.clock = clock
        self.key = key or settings.storage_key
        self.schema_version = schema_version or settings.snapshot_schema_version
        self.max_age_seconds = max_age_seconds if max_age_seconds is not None else settings.snapshot_max_age_seconds

    @graceful_degradation(log_message="Failed to save booking progress")
    def save(self, snapshot: PersistedSnapshot) -> Optional[PersistedSnapshot]:
        """
        Write the snapshot, stamping ``savedAt`` and ``schemaVersion``.

        Returns:
            The snapshot as written, or None if storage failed
        """
        stamped = snapshot.model_copy(update={
            "saved_at": self._now_ms(),
            "schema_version": self.schema_version,
        })
        self.storage.set(self.key, stamped.model_dump_json(by_alias=True, exclude_none=True))
        logger.debug(f"Saved booking progress at step {stamped.current_step_index}")
        return stamped

    def load(self) -> Optional[PersistedSnapshot]:
        """
        Read the snapshot if present and still valid.

        Returns:
            PersistedSnapshot, or None if absent, unparseable, of another
            schema version, or older than the maximum age
        """
        raw = self._read()
        if raw is None:
            return None

        try:
            snapshot = PersistedSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable booking progress: {e.error_count()} error(s)")
            self.clear()
            return None

        if snapshot.schema_version != self.schema_version:
            logger.info(
                f"Discarding booking progress with schema {snapshot.schema_version!r}, "
                f"expected {self.schema_version!r}"
            )
            self.clear()
            return None

        age_ms = self._now_ms() - snapshot.saved_at
        if age_ms >= self.max_age_seconds * 1000:
            logger.info(f"Discarding stale booking progress ({age_ms / 1000:.0f}s old)")
            self.clear()
            return None

        return snapshot

    @graceful_degradation(log_message="Failed to clear booking progress")
    def clear(self) -> None:
        """Remove the stored snapshot unconditionally."""
        self.storage.delete(self.key)

    def _now_ms(self) -> int:
        # flow imports this package, so the helper is imported at call time
        from flow.clock import epoch_millis

        return epoch_millis(self.clock.now())

    @graceful_degradation(log_message="Failed to read booking progress")
    def _read(self) -> Optional[str]:
        return self.storage.get(self.key)
