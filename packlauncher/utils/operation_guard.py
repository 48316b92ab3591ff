"""
Process-wide mutual exclusion for long running operations.

At most one install and at most one self-update may run at a time. A second
attempt fails immediately instead of waiting.
"""

import threading
from contextlib import contextmanager
from typing import Iterator

from loguru import logger

from packlauncher.utils.exception import OperationInProgressError

INSTALL = "install"
SELF_UPDATE = "self-update"


class OperationGuard:
    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, kind: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(kind)
            if lock is None:
                lock = threading.Lock()
                self._locks[kind] = lock
            return lock

    def is_running(self, kind: str) -> bool:
        return self._lock_for(kind).locked()

    @contextmanager
    def hold(self, kind: str) -> Iterator[None]:
        """
        Run the enclosed block as the single active ``kind`` operation.

        :raises OperationInProgressError: if one is already running
        """
        lock = self._lock_for(kind)
        if not lock.acquire(blocking=False):
            logger.warning(f"Refusing to start {kind}: another {kind} is in progress")
            raise OperationInProgressError(f"A {kind} operation is already in progress")
        try:
            yield
        finally:
            lock.release()


# Shared by every controller in the process
operation_guard = OperationGuard()
