import threading
import unittest
from queue import Empty, Queue

import numpy as np

from helpers import LABELS, bgra_frame, raw_outputs
from ssd_kit.config import PipelineConfig
from ssd_kit.errors import InferenceError
from ssd_kit.runtime import SsdPipeline
from ssd_kit.types import Frame, RawDetections
from ssd_kit.worker import FrameWorker, _offer_latest

SMALL = PipelineConfig(input_width=4, input_height=4)


class GatedEngine:
    """Blocks inside invoke until released, and tracks overlapping calls."""

    quantized = True

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.active = 0
        self.max_active = 0
        self.seen_values = []
        self._lock = threading.Lock()
        self._outputs = raw_outputs([((0.1, 0.1, 0.2, 0.2), 0, 0.9)])

    def invoke(self, tensor: np.ndarray) -> RawDetections:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.seen_values.append(int(tensor[0, 0, 0, 0]))
        self.entered.set()
        self.release.wait(timeout=5)
        with self._lock:
            self.active -= 1
        return RawDetections.from_outputs(self._outputs)


def _frame(red: int) -> Frame:
    return Frame(bgra_frame(4, 4, (0, 0, red, 255)))


class ConsumerWinsQueue(Queue):
    """The first eviction attempt finds the pending item already taken by the consumer."""

    def __init__(self):
        super().__init__(maxsize=1)
        self.raced = False

    def get_nowait(self):
        if not self.raced:
            self.raced = True
            self.get()
            raise Empty
        return super().get_nowait()


class TestOfferLatest(unittest.TestCase):
    def test_drops_oldest_when_full(self) -> None:
        q: Queue = Queue(maxsize=1)
        self.assertFalse(_offer_latest(q, "old"))
        self.assertTrue(_offer_latest(q, "new"))
        self.assertEqual(q.get_nowait(), "new")

    def test_item_lands_when_consumer_empties_queue_first(self) -> None:
        q = ConsumerWinsQueue()
        q.put_nowait("pending")
        self.assertFalse(_offer_latest(q, "new"))
        self.assertEqual(q.get_nowait(), "new")


class TestFrameWorker(unittest.TestCase):
    def test_one_in_flight_and_only_latest_pending_survives(self) -> None:
        engine = GatedEngine()
        results = []
        done = threading.Event()

        def on_result(result) -> None:
            results.append(result)
            if len(results) == 2:
                done.set()

        worker = FrameWorker(SsdPipeline(engine, LABELS, config=SMALL), on_result).start()
        try:
            self.assertTrue(worker.submit(_frame(1)))
            self.assertTrue(engine.entered.wait(timeout=5))
            # Engine is busy with frame 1; only the newest of these survives.
            for red in (2, 3, 4):
                worker.submit(_frame(red))
            engine.release.set()
            self.assertTrue(done.wait(timeout=5))
        finally:
            worker.stop(timeout=5)

        self.assertEqual(engine.seen_values, [1, 4])
        self.assertEqual(engine.max_active, 1)
        self.assertEqual(worker.dropped, 2)
        self.assertEqual(worker.processed, 2)
        self.assertTrue(all(r is not None and len(r.detections) == 1 for r in results))

    def test_failed_frames_reported_as_none(self) -> None:
        class Broken:
            quantized = False

            def invoke(self, tensor):
                raise InferenceError("boom")

        got = []
        done = threading.Event()

        def on_result(result) -> None:
            got.append(result)
            done.set()

        with FrameWorker(SsdPipeline(Broken(), LABELS, config=SMALL), on_result) as worker:
            with self.assertLogs("ssd_kit.runtime", level="WARNING"):
                worker.submit(_frame(1))
                self.assertTrue(done.wait(timeout=5))
        self.assertEqual(got, [None])

    def test_precondition_error_surfaces_on_stop(self) -> None:
        engine_outputs = raw_outputs([((0.1, 0.1, 0.2, 0.2), 99, 0.9)])

        class BadIds:
            quantized = False

            def invoke(self, tensor):
                return RawDetections.from_outputs(engine_outputs)

        worker = FrameWorker(SsdPipeline(BadIds(), LABELS, config=SMALL), lambda r: None).start()
        with self.assertLogs("ssd_kit.worker", level="ERROR"):
            worker.submit(_frame(1))
            worker._thread.join(timeout=5)
        self.assertFalse(worker.submit(_frame(2)))
        with self.assertRaises(RuntimeError) as ctx:
            worker.stop()
        self.assertIsInstance(ctx.exception.__cause__, IndexError)

    def test_stop_with_pending_frame_survives_consumer_race(self) -> None:
        engine = GatedEngine()
        worker = FrameWorker(SsdPipeline(engine, LABELS, config=SMALL), lambda r: None)
        worker._inbox = ConsumerWinsQueue()
        worker.start()
        self.assertTrue(worker.submit(_frame(1)))
        self.assertTrue(engine.entered.wait(timeout=5))
        self.assertTrue(worker.submit(_frame(2)))

        releaser = threading.Timer(0.2, engine.release.set)
        releaser.start()
        try:
            worker.stop(timeout=5)
        finally:
            releaser.cancel()
            engine.release.set()
        self.assertFalse(worker.is_running)

    def test_submit_after_stop_is_refused(self) -> None:
        worker = FrameWorker(SsdPipeline(GatedEngine(), LABELS, config=SMALL), lambda r: None).start()
        worker.stop(timeout=5)
        self.assertFalse(worker.is_running)
        self.assertFalse(worker.submit(_frame(1)))


if __name__ == "__main__":
    unittest.main()
