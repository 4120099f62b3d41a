import asyncio
import os
import sys
import threading
import unittest
from concurrent.futures import CancelledError
from concurrent.futures import TimeoutError as FutureTimeoutError

# Ensure the package is importable when running tests from repo root
THIS_DIR = os.path.dirname(__file__)
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from padcryptor.aes import PycryptodomeAES  # noqa: E402
from padcryptor.config import Settings  # noqa: E402
from padcryptor.cryptor import CryptorRequest, PaddedCryptor  # noqa: E402
from padcryptor.operation import CryptorOperation, CryptorQueue, OperationState  # noqa: E402
from padcryptor.status import CryptorStatus, ParameterError, PrimitiveFailure  # noqa: E402

KEY = bytes(range(16))
IV = bytes(16)


class GatedAES(PycryptodomeAES):
    """Blocks inside the transform until released."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def _run(self, *args):
        self.started.set()
        self.release.wait(5)
        return super()._run(*args)


class ExplodingCryptor(PaddedCryptor):
    """A cryptor whose execute escapes with an exception."""

    def execute(self, request):
        raise RuntimeError("cryptor exploded")


class OperationTests(unittest.TestCase):
    def test_run_publishes_once(self):
        op = CryptorOperation(CryptorRequest.to_encrypt(b"hello", KEY, IV))
        self.assertEqual(op.state, OperationState.PENDING)
        self.assertFalse(op.done())
        op.run()
        self.assertEqual(op.state, OperationState.FINISHED)
        first = op.result(timeout=1)
        self.assertTrue(first.ok)
        op.run()
        self.assertIs(op.result(), first)
        with self.assertRaises(RuntimeError):
            op._publish(first)

    def test_failure_result(self):
        op = CryptorOperation(CryptorRequest.to_decrypt(b"abc", KEY, IV))
        op.run()
        self.assertIsInstance(op.result().error, ParameterError)

    def test_cancel_before_start(self):
        op = CryptorOperation(CryptorRequest.to_encrypt(b"hello", KEY, IV))
        seen = []
        op.add_done_callback(seen.append)
        self.assertTrue(op.cancel())
        self.assertTrue(op.cancelled())
        self.assertEqual(seen, [op])
        op.run()
        self.assertEqual(op.state, OperationState.CANCELLED)
        with self.assertRaises(CancelledError):
            op.result()

    def test_cannot_cancel_finished(self):
        op = CryptorOperation(CryptorRequest.to_encrypt(b"hello", KEY, IV))
        op.run()
        self.assertFalse(op.cancel())
        self.assertTrue(op.result().ok)

    def test_callback_after_done_runs_immediately(self):
        op = CryptorOperation(CryptorRequest.to_encrypt(b"hello", KEY, IV))
        op.run()
        seen = []
        op.add_done_callback(seen.append)
        self.assertEqual(seen, [op])

    def test_result_timeout(self):
        op = CryptorOperation(CryptorRequest.to_encrypt(b"hello", KEY, IV))
        with self.assertRaises(FutureTimeoutError):
            op.result(timeout=0.01)

    def test_rejects_non_request(self):
        with self.assertRaises(TypeError):
            CryptorOperation(b"hello")

    def test_raising_cryptor_still_finishes(self):
        op = CryptorOperation(CryptorRequest.to_encrypt(b"hello", KEY, IV), ExplodingCryptor())
        seen = []
        op.add_done_callback(seen.append)
        with self.assertLogs("padcryptor.operation", level="ERROR"):
            op.run()
        self.assertEqual(op.state, OperationState.FINISHED)
        self.assertEqual(seen, [op])
        result = op.result(timeout=1)
        self.assertIsInstance(result.error, PrimitiveFailure)
        self.assertEqual(result.status, CryptorStatus.UNSPECIFIED_ERROR)


class QueueTests(unittest.TestCase):
    def test_run_all_preserves_order(self):
        payloads = [os.urandom(n) for n in range(0, 200, 7)]
        with CryptorQueue(max_workers=4) as q:
            cts = q.run_all(CryptorRequest.to_encrypt(p, KEY, IV) for p in payloads)
            pts = q.run_all(CryptorRequest.to_decrypt(r.unwrap(), KEY, IV) for r in cts)
        self.assertEqual([r.unwrap() for r in pts], payloads)

    def test_run_async(self):
        async def go(q):
            ct = await q.run_async(CryptorRequest.to_encrypt(b"async", KEY, IV))
            results = await asyncio.gather(*(q.run_async(CryptorRequest.to_decrypt(ct.unwrap(), KEY, IV)) for _ in range(8)))
            return results

        with CryptorQueue(max_workers=2) as q:
            results = asyncio.run(go(q))
        self.assertEqual([r.unwrap() for r in results], [b"async"] * 8)

    def test_raising_cryptor_on_queue_completes(self):
        with CryptorQueue(max_workers=1, cryptor=ExplodingCryptor()) as q:
            with self.assertLogs("padcryptor.operation", level="ERROR"):
                op = q.submit(CryptorRequest.to_encrypt(b"hello", KEY, IV))
                result = op.result(timeout=5)
        self.assertEqual(result.status, CryptorStatus.UNSPECIFIED_ERROR)
        self.assertEqual(q._pending, [])

    def test_run_async_cancelled_before_start_cancels_operation(self):
        gate = GatedAES()
        q = CryptorQueue(max_workers=1, cryptor=PaddedCryptor(gate))

        async def go():
            task = asyncio.ensure_future(q.run_async(CryptorRequest.to_encrypt(b"two", KEY, IV)))
            await asyncio.sleep(0.05)
            second = q._pending[1]
            self.assertEqual(second.state, OperationState.PENDING)
            task.cancel()
            with self.assertRaises(asyncio.CancelledError):
                await task
            return second

        try:
            first = q.submit(CryptorRequest.to_encrypt(b"one", KEY, IV))
            self.assertTrue(gate.started.wait(5))
            second = asyncio.run(go())
            self.assertTrue(second.cancelled())
            self.assertEqual(q._pending, [first])
            gate.release.set()
            self.assertTrue(first.result(timeout=5).ok)
            with self.assertRaises(CancelledError):
                second.result(timeout=5)
        finally:
            gate.release.set()
            q.shutdown()

    def test_cancel_pending_while_busy(self):
        gate = GatedAES()
        q = CryptorQueue(max_workers=1, cryptor=PaddedCryptor(gate))
        try:
            first = q.submit(CryptorRequest.to_encrypt(b"one", KEY, IV))
            self.assertTrue(gate.started.wait(5))
            second = q.submit(CryptorRequest.to_encrypt(b"two", KEY, IV))
            self.assertFalse(first.cancel())
            self.assertTrue(second.cancel())
            gate.release.set()
            self.assertTrue(first.result(timeout=5).ok)
            with self.assertRaises(CancelledError):
                second.result(timeout=5)
        finally:
            gate.release.set()
            q.shutdown()

    def test_shutdown_cancels_pending(self):
        gate = GatedAES()
        q = CryptorQueue(max_workers=1, cryptor=PaddedCryptor(gate))
        first = q.submit(CryptorRequest.to_encrypt(b"one", KEY, IV))
        self.assertTrue(gate.started.wait(5))
        second = q.submit(CryptorRequest.to_encrypt(b"two", KEY, IV))
        timer = threading.Timer(0.1, gate.release.set)
        timer.start()
        q.shutdown(cancel_pending=True)
        timer.join()
        self.assertTrue(first.result().ok)
        self.assertTrue(second.cancelled())
        with self.assertRaises(RuntimeError):
            q.submit(CryptorRequest.to_encrypt(b"three", KEY, IV))

    def test_from_settings(self):
        q = CryptorQueue.from_settings(Settings(backend="cryptography", workers=3))
        try:
            self.assertEqual(q.max_workers, 3)
            self.assertEqual(q.cryptor.primitive.name, "cryptography")
        finally:
            q.shutdown()

    def test_invalid_workers(self):
        with self.assertRaises(ValueError):
            CryptorQueue(max_workers=0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
