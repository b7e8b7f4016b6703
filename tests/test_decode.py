import unittest

import numpy as np

from helpers import LABELS, raw_outputs
from ssd_kit.colors import color_for_class
from ssd_kit.decode import SsdDecoder, decode, normalized_rect
from ssd_kit.errors import OutputShapeError
from ssd_kit.types import RawDetections


class TestSsdDecode(unittest.TestCase):
    def test_box_is_top_left_bottom_right_and_scaled_per_axis(self) -> None:
        raw = RawDetections.from_outputs(raw_outputs([((0.1, 0.2, 0.6, 0.8), 0, 0.9)]))
        dets = decode(raw, LABELS, 640, 480, 0.5)
        self.assertEqual(len(dets), 1)
        r = dets[0].bounding_box
        self.assertAlmostEqual(r.x, 128.0, places=3)
        self.assertAlmostEqual(r.y, 48.0, places=3)
        self.assertAlmostEqual(r.width, 384.0, places=3)
        self.assertAlmostEqual(r.height, 240.0, places=3)

    def test_normalized_rect_reads_indices_not_xywh(self) -> None:
        raw = RawDetections.from_outputs(raw_outputs([((0.0, 0.0, 0.0, 0.0), 0, 0.1), ((0.25, 0.5, 0.75, 1.0), 0, 0.2)]))
        r = normalized_rect(raw, 1)
        self.assertAlmostEqual(r.x, 0.5)
        self.assertAlmostEqual(r.y, 0.25)
        self.assertAlmostEqual(r.width, 0.5)
        self.assertAlmostEqual(r.height, 0.5)

    def test_threshold_filters_below_and_keeps_equal(self) -> None:
        rows = [
            ((0.1, 0.1, 0.2, 0.2), 0, 0.49),
            ((0.1, 0.1, 0.2, 0.2), 1, 0.5),
            ((0.1, 0.1, 0.2, 0.2), 2, 0.75),
            ((0.1, 0.1, 0.2, 0.2), 3, 0.1),
        ]
        raw = RawDetections.from_outputs(raw_outputs(rows))
        dets = decode(raw, LABELS, 100, 100, 0.5)
        self.assertEqual([d.class_name for d in dets], ["car", "bicycle"])
        self.assertTrue(all(d.confidence >= 0.5 for d in dets))

    def test_nan_scores_are_skipped(self) -> None:
        rows = [
            ((0.1, 0.1, 0.2, 0.2), 0, 0.6),
            ((0.1, 0.1, 0.2, 0.2), 1, float("nan")),
            ((0.1, 0.1, 0.2, 0.2), 2, 0.9),
        ]
        raw = RawDetections.from_outputs(raw_outputs(rows))
        dets = decode(raw, LABELS, 100, 100, 0.5)
        self.assertEqual([d.class_name for d in dets], ["car", "person"])
        self.assertEqual([d.confidence for d in dets], sorted((d.confidence for d in dets), reverse=True))

    def test_sorted_descending_by_confidence(self) -> None:
        rng = np.random.default_rng(7)
        scores = rng.uniform(0.0, 1.0, size=10)
        rows = [((0.0, 0.0, 0.5, 0.5), int(i % 4), float(s)) for i, s in enumerate(scores)]
        raw = RawDetections.from_outputs(raw_outputs(rows))
        dets = decode(raw, LABELS, 300, 300, 0.0)
        self.assertEqual(len(dets), 10)
        conf = [d.confidence for d in dets]
        self.assertEqual(conf, sorted(conf, reverse=True))

    def test_only_count_rows_are_read(self) -> None:
        rows = [((0.1, 0.1, 0.2, 0.2), 0, 0.9), ((0.1, 0.1, 0.2, 0.2), 1, 0.95)]
        raw = RawDetections.from_outputs(raw_outputs(rows, count=1))
        dets = decode(raw, LABELS, 100, 100, 0.5)
        self.assertEqual([d.class_name for d in dets], ["person"])

    def test_zero_count_returns_empty(self) -> None:
        # Garbage past `count` must never be looked up.
        rows = [((0.1, 0.1, 0.2, 0.2), 999, 0.99)]
        raw = RawDetections.from_outputs(raw_outputs(rows, count=0))
        self.assertEqual(decode(raw, LABELS, 100, 100, 0.5), [])

    def test_color_keyed_on_class_id_plus_one(self) -> None:
        raw = RawDetections.from_outputs(raw_outputs([((0.1, 0.1, 0.2, 0.2), 2, 0.9)]))
        det = decode(raw, LABELS, 100, 100, 0.5)[0]
        self.assertEqual(det.display_color, color_for_class(3))
        self.assertEqual(det.class_id, 2)
        self.assertEqual(det.class_name, "car")

    def test_out_of_range_class_id_raises(self) -> None:
        raw = RawDetections.from_outputs(raw_outputs([((0.1, 0.1, 0.2, 0.2), 42, 0.9)]))
        with self.assertRaises(IndexError):
            decode(raw, LABELS, 100, 100, 0.5)

    def test_decoder_binds_labels_and_threshold(self) -> None:
        raw = RawDetections.from_outputs(raw_outputs([((0.0, 0.0, 1.0, 1.0), 0, 0.6)]))
        self.assertEqual(SsdDecoder(LABELS, threshold=0.7).process(raw, (10, 20)), [])
        dets = SsdDecoder(LABELS, threshold=0.5).process(raw, (10, 20))
        self.assertAlmostEqual(dets[0].bounding_box.width, 10.0)
        self.assertAlmostEqual(dets[0].bounding_box.height, 20.0)


class TestRawDetections(unittest.TestCase):
    def test_from_outputs_flattens_batch_axis(self) -> None:
        raw = RawDetections.from_outputs(raw_outputs([((0.1, 0.2, 0.3, 0.4), 1, 0.5)], max_detections=5))
        self.assertEqual(raw.boxes.shape, (20,))
        self.assertEqual(raw.max_detections, 5)
        self.assertEqual(raw.count, 1)

    def test_mismatched_lengths_raise(self) -> None:
        boxes, classes, scores, count = raw_outputs([], max_detections=4)
        with self.assertRaises(OutputShapeError):
            RawDetections.from_outputs((boxes[:, :3], classes, scores, count))
        with self.assertRaises(OutputShapeError):
            RawDetections.from_outputs((boxes, classes[:, :2], scores, count))

    def test_count_out_of_range_raises(self) -> None:
        boxes, classes, scores, _ = raw_outputs([], max_detections=4)
        with self.assertRaises(OutputShapeError):
            RawDetections.from_outputs((boxes, classes, scores, np.array([5.0])))
        with self.assertRaises(OutputShapeError):
            RawDetections.from_outputs((boxes, classes, scores, np.array([-1.0])))

    def test_missing_outputs_raise(self) -> None:
        boxes, classes, scores, _ = raw_outputs([])
        with self.assertRaises(OutputShapeError):
            RawDetections.from_outputs((boxes, classes, scores))


if __name__ == "__main__":
    unittest.main()
