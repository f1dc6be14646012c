from __future__ import annotations

import logging

from ..ports.store_port import HolderStorePort
from ...shared.keys import holder_key, validate_identity

logger = logging.getLogger(__name__)


class ReleaseSlotUseCase:
    def __init__(self, store: HolderStorePort) -> None:
        self._store = store

    def execute(self, prefix: str, postfix: str) -> None:
        validate_identity(prefix, postfix)
        self._store.release(prefix, postfix)
        logger.debug(f"Released {holder_key(prefix, postfix)}")
