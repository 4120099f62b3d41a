# padcryptor/operation.py
from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import CancelledError, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Callable, Iterable, List, Optional

from padcryptor.config import DEFAULT_WORKERS, Settings
from padcryptor.cryptor import CryptorRequest, CryptorResult, PaddedCryptor
from padcryptor.status import CryptorStatus, PrimitiveFailure

logger = logging.getLogger(__name__)


class OperationState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class CryptorOperation:
    """One cryptor request as a schedulable, one-shot unit of work.

    The operation can be cancelled only while it is pending. Once ``run`` has
    started it always goes on to publish a result.
    """

    def __init__(self, request: CryptorRequest, cryptor: Optional[PaddedCryptor] = None) -> None:
        if not isinstance(request, CryptorRequest):
            raise TypeError("request must be a CryptorRequest")
        self.request = request
        self.cryptor = cryptor if cryptor is not None else PaddedCryptor()
        self._state = OperationState.PENDING
        self._result: Optional[CryptorResult] = None
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._callbacks: List[Callable[["CryptorOperation"], None]] = []

    @property
    def state(self) -> OperationState:
        return self._state

    def cancelled(self) -> bool:
        return self._state == OperationState.CANCELLED

    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> bool:
        with self._lock:
            if self._state != OperationState.PENDING:
                return self._state == OperationState.CANCELLED
            self._state = OperationState.CANCELLED
        logger.debug("Cancelled %s operation before it started", self.request.direction.value)
        self._finish()
        return True

    def run(self) -> None:
        with self._lock:
            if self._state != OperationState.PENDING:
                return
            self._state = OperationState.RUNNING
        try:
            result = self.cryptor.execute(self.request)
        except Exception:
            logger.exception("Cryptor raised while running %s operation", self.request.direction.value)
            result = CryptorResult.failure(PrimitiveFailure(CryptorStatus.UNSPECIFIED_ERROR))
        self._publish(result)

    def _publish(self, result: CryptorResult) -> None:
        with self._lock:
            if self._result is not None or self._state != OperationState.RUNNING:
                raise RuntimeError("operation result already published")
            self._result = result
            self._state = OperationState.FINISHED
        self._finish()

    def _finish(self) -> None:
        self._done.set()
        with self._lock:
            callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            self._invoke(fn)

    def _invoke(self, fn: Callable[["CryptorOperation"], None]) -> None:
        try:
            fn(self)
        except Exception:
            logger.exception("Done callback for cryptor operation raised")

    def add_done_callback(self, fn: Callable[["CryptorOperation"], None]) -> None:
        with self._lock:
            if not self._done.is_set():
                self._callbacks.append(fn)
                return
        self._invoke(fn)

    def result(self, timeout: Optional[float] = None) -> CryptorResult:
        if not self._done.wait(timeout):
            raise FutureTimeoutError()
        if self._state == OperationState.CANCELLED:
            raise CancelledError()
        return self._result

    def __repr__(self) -> str:
        return f"<CryptorOperation {self.request.direction.value} {self.request.mode.name} state={self._state.value}>"


class CryptorQueue:
    """Runs cryptor operations concurrently on a thread pool.

    Operations share nothing but the (stateless) cryptor, so no locking is
    needed between them.
    """

    def __init__(self, max_workers: Optional[int] = None, cryptor: Optional[PaddedCryptor] = None) -> None:
        if max_workers is not None and max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self.max_workers = max_workers or DEFAULT_WORKERS
        self.cryptor = cryptor if cryptor is not None else PaddedCryptor()
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="padcryptor")
        self._pending: List[CryptorOperation] = []
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "CryptorQueue":
        return cls(settings.workers, PaddedCryptor.from_settings(settings))

    def _track(self, request: CryptorRequest) -> CryptorOperation:
        op = CryptorOperation(request, self.cryptor)
        with self._lock:
            if self._closed:
                raise RuntimeError("cannot submit to a queue that has been shut down")
            self._pending.append(op)
        op.add_done_callback(self._forget)
        return op

    def submit(self, request: CryptorRequest) -> CryptorOperation:
        op = self._track(request)
        self._pool.submit(op.run)
        return op

    def _forget(self, op: CryptorOperation) -> None:
        with self._lock:
            if op in self._pending:
                self._pending.remove(op)

    def run_all(self, requests: Iterable[CryptorRequest]) -> List[CryptorResult]:
        ops = [self.submit(r) for r in requests]
        return [op.result() for op in ops]

    async def run_async(self, request: CryptorRequest) -> CryptorResult:
        op = self._track(request)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._pool, op.run)
        except asyncio.CancelledError:
            # Only takes effect if the pool had not started the operation yet.
            op.cancel()
            raise
        return op.result()

    def shutdown(self, cancel_pending: bool = True) -> None:
        with self._lock:
            self._closed = True
            pending = list(self._pending)
        if cancel_pending:
            cancelled = sum(1 for op in pending if op.state == OperationState.PENDING and op.cancel())
            if cancelled:
                logger.info("Cancelled %d pending cryptor operations on shutdown", cancelled)
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "CryptorQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(cancel_pending=exc_type is not None)
