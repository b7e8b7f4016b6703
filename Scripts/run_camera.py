from __future__ import annotations

import argparse
import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional

import cv2
import numpy as np

from ssd_kit import Frame, FrameResult, FrameWorker, PipelineConfig, draw_detections, load_pipeline, load_pipeline_config

logger = logging.getLogger("run_camera")


def _iter_frames(args: argparse.Namespace) -> Iterable[np.ndarray]:
    if args.video is not None:
        cap = cv2.VideoCapture(args.video)
        if not cap.isOpened():
            raise FileNotFoundError(f"Could not open video: {args.video}")
    else:
        cam_index = 0 if args.webcam is None else int(args.webcam)
        cap = cv2.VideoCapture(cam_index)
        if not cap.isOpened():
            raise RuntimeError(f"Could not open webcam index: {cam_index}")

    processed = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            yield frame
            processed += 1
            if args.max_frames and processed >= int(args.max_frames):
                break
    finally:
        cap.release()


def _log_result(result: FrameResult, capture_confidence: float) -> None:
    for det in result.detections:
        logger.info("%s %.2f %s", det.class_name, det.confidence, det.bounding_box)
    if result.has_confident(capture_confidence):
        logger.info("capture-worthy frame (>= %.2f)", capture_confidence)


def _run_image(args: argparse.Namespace, pipeline) -> int:
    img = cv2.imread(args.image)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {args.image}")

    result = pipeline.run(Frame.from_bgr(img))
    if result is None:
        logger.error("Inference failed for %s", args.image)
        return 1
    logger.info("inference %.1f ms", result.inference_time_ms)
    _log_result(result, args.capture_conf)

    if not args.no_show:
        cv2.imshow("detections", draw_detections(img, result.detections))
        cv2.waitKey(0)
        cv2.destroyAllWindows()
    return 0


def _run_stream(args: argparse.Namespace, pipeline) -> int:
    lock = threading.Lock()
    latest: dict = {"result": None}

    def on_result(result: Optional[FrameResult]) -> None:
        if result is None:
            return
        _log_result(result, args.capture_conf)
        with lock:
            latest["result"] = result

    with FrameWorker(pipeline, on_result) as worker:
        for image in _iter_frames(args):
            worker.submit(Frame.from_bgr(image))
            if args.no_show:
                continue
            with lock:
                result = latest["result"]
            vis = draw_detections(image, result.detections) if result is not None else image
            cv2.imshow("detections", vis)
            if cv2.waitKey(1) & 0xFF == ord("q"):
                break

    logger.info("processed=%d dropped=%d", worker.processed, worker.dropped)
    if not args.no_show:
        cv2.destroyAllWindows()
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run an SSD detector on an image, a video, or a webcam.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")

    parser.add_argument("--model", default="Models/detect.onnx", help="Detector model path.")
    parser.add_argument("--labels", default="Models/labelmap.txt", help="Label map path (first line is a placeholder).")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--config", default=None, help="Optional pipeline config JSON.")
    parser.add_argument("--threads", type=int, default=None, help="Engine thread count (1-10).")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--capture-conf", type=float, default=0.9, help="Confidence that marks a capture-worthy frame.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--no-show", action="store_true", help="Do not open a preview window.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    config = load_pipeline_config(Path(args.config)) if args.config else PipelineConfig()
    overrides = {}
    if args.threads is not None:
        overrides["thread_count"] = args.threads
    if args.conf is not None:
        overrides["confidence_threshold"] = args.conf
    if overrides:
        config = replace(config, **overrides)

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = load_pipeline(
        args.model,
        args.labels,
        backend=args.backend,
        config=config,
        onnx_providers=onnx_providers,
    )

    if args.image is not None:
        return _run_image(args, pipeline)
    return _run_stream(args, pipeline)


if __name__ == "__main__":
    raise SystemExit(main())
