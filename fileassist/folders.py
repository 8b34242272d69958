"""Client-side mirror of the backend's watched folders."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fileassist.gateway import RemoteGateway
from fileassist.models import Envelope, WatchFolder

logger = logging.getLogger(__name__)

FoldersListener = Callable[[tuple[WatchFolder, ...]], Any]


def _parse_folders(data: Any) -> tuple[WatchFolder, ...]:
    # The backend has shipped both {"folders": [...]} and a bare list.
    items = data.get("folders") if isinstance(data, dict) else data
    if not isinstance(items, list):
        return ()
    return tuple(WatchFolder.from_payload(item) for item in items if isinstance(item, dict))


class FolderRegistry:
    """Mirror of the backend folder list.

    The cache only changes on a successful ``list()``, which replaces it
    wholesale. ``add``/``remove`` never touch it directly; after a confirmed
    mutation they re-fetch the list. Concurrent mutations may interleave;
    whichever ``list()`` succeeds last defines the cache.
    """

    def __init__(self, gateway: RemoteGateway) -> None:
        self._gateway = gateway
        self._folders: tuple[WatchFolder, ...] = ()
        self._listeners: list[FoldersListener] = []
        self.last_error: Optional[str] = None
        self.loaded = False

    @property
    def folders(self) -> tuple[WatchFolder, ...]:
        return self._folders

    def watch(self, listener: FoldersListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unwatch() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unwatch

    async def list(self) -> Envelope:
        envelope = await self._gateway.list_folders()
        if not envelope.success:
            self.last_error = envelope.error_message("failed to load folders")
            return envelope
        self._folders = _parse_folders(envelope.data)
        self.loaded = True
        self.last_error = None
        logger.info("Folder registry refreshed (%d folders)", len(self._folders))
        self._notify()
        return envelope

    async def add(self, path: str, recursive: bool = True) -> Envelope:
        cleaned = (path or "").strip()
        if not cleaned:
            envelope = Envelope.failure("folder path is required")
            self.last_error = envelope.message
            return envelope
        envelope = await self._gateway.add_folder(cleaned, recursive)
        return await self._settle(envelope, "failed to add folder")

    async def remove(self, folder_id: Any) -> Envelope:
        envelope = await self._gateway.remove_folder(folder_id)
        return await self._settle(envelope, "failed to remove folder")

    async def reindex(self) -> Envelope:
        envelope = await self._gateway.reindex_folders()
        return await self._settle(envelope, "failed to re-index folders")

    async def _settle(self, envelope: Envelope, default_error: str) -> Envelope:
        if not envelope.success:
            self.last_error = envelope.error_message(default_error)
            return envelope
        self.last_error = None
        await self.list()
        return envelope

    def find(self, folder_id: Any) -> Optional[WatchFolder]:
        return next((folder for folder in self._folders if folder.id == folder_id), None)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._folders)
            except Exception:
                logger.exception("Folder listener failed")


__all__ = ["FolderRegistry"]
