"""
Pipeline threads for Teach Cam.
Handles capture, throttled detection, and the flow of frames to the UI.
"""

import threading
import queue
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import cv2
import numpy as np

from . import config
from .detection import Detection, Detector

logger = logging.getLogger(__name__)


@dataclass
class DetectionState:
    """
    State shared between the detection thread and the UI thread.

    The UI flips mode; the detection thread reads it and fills in stats for the HUD.
    """
    mode: config.AppMode = config.DEFAULT_APP_MODE
    frames_seen: int = 0
    detections_run: int = 0
    last_detection_ms: float = 0.0  # Duration of the most recent pass


@dataclass
class FrameResult:
    """A frame and the detections to overlay on it."""
    frame: np.ndarray
    detections: list[Detection] = field(default_factory=list)
    timestamp: float = 0.0
    fresh: bool = False  # True if detection ran on this very frame


class DetectionThrottle:
    """
    Minimum-interval gate for detection passes.

    Frames arriving inside the interval are shown with the previous detections.
    """

    def __init__(
        self,
        interval_ms: float = config.DETECTION_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval_ms / 1000.0
        self.clock = clock
        self._last_run: float | None = None

    def ready(self) -> bool:
        """True if enough time has passed since the last pass."""
        if self._last_run is None:
            return True
        return self.clock() - self._last_run >= self.interval

    def mark(self) -> None:
        """Record that a pass just ran."""
        self._last_run = self.clock()

    def reset(self) -> None:
        self._last_run = None


def put_latest(q: queue.Queue, item) -> None:
    """
    Put item into a bounded queue without blocking.

    If the queue is full, the stale item is discarded so the newest one wins.
    """
    try:
        q.put_nowait(item)
    except queue.Full:
        try:
            q.get_nowait()
        except queue.Empty:
            pass
        q.put_nowait(item)


def open_camera(camera_index: int) -> cv2.VideoCapture | None:
    """
    Open a camera, retrying a few times for slow devices.

    Returns:
        An opened VideoCapture, or None if the camera could not be opened
    """
    cap = cv2.VideoCapture(camera_index)
    attempts = 1
    while not cap.isOpened() and attempts < config.CAMERA_OPEN_ATTEMPTS:
        cap.release()
        time.sleep(config.CAMERA_RETRY_DELAY)
        cap = cv2.VideoCapture(camera_index)
        attempts += 1

    if not cap.isOpened():
        cap.release()
        return None

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, config.RESOLUTION[0])
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, config.RESOLUTION[1])

    # Not all cameras honor this
    cap.set(cv2.CAP_PROP_FPS, config.TARGET_FPS)
    return cap


def capture_thread_fn(
    stop_event: threading.Event,
    capture_queue: queue.Queue,
    camera_index: int = config.CAMERA_INDEX,
) -> None:
    """
    Capture thread: reads frames from the camera and pushes them to capture_queue.

    Setting stop_event stops frame delivery, which in turn stops detection
    scheduling. The camera is released on exit.

    Args:
        stop_event: Event to signal thread shutdown
        capture_queue: Queue to send captured frames (maxsize=1)
        camera_index: OpenCV camera index
    """
    logger.info(f"Capture thread started (camera {camera_index})")

    cap = open_camera(camera_index)
    if cap is None:
        logger.error(f"Failed to open camera {camera_index}")
        stop_event.set()
        return

    actual_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    actual_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    logger.info(f"Camera opened: {actual_width}x{actual_height}")

    frame_count = 0
    last_log_time = time.time()

    try:
        while not stop_event.is_set():
            ret, frame = cap.read()

            if not ret or frame is None or frame.size == 0:
                logger.warning("Failed to read frame from camera")
                time.sleep(0.1)
                continue

            put_latest(capture_queue, frame)
            frame_count += 1

            # Log FPS periodically
            current_time = time.time()
            if current_time - last_log_time >= 5.0:
                fps = frame_count / (current_time - last_log_time)
                logger.debug(f"Capture FPS: {fps:.1f}")
                frame_count = 0
                last_log_time = current_time

            # Small sleep to avoid spinning too fast
            time.sleep(0.001)

    finally:
        cap.release()
        logger.info("Capture thread stopped, camera released")


def process_frame(
    frame: np.ndarray,
    detector: Detector,
    state: DetectionState,
    throttle: DetectionThrottle,
    last_detections: list[Detection],
) -> FrameResult:
    """
    Decide whether to run detection on one frame and build its result.

    Detection runs only in DETECTION mode, on a trained detector, and when the
    throttle allows it. Otherwise the previous detections are reused (or
    cleared outside DETECTION mode). A detector error yields no detections
    for this frame.
    """
    state.frames_seen += 1
    timestamp = time.time()

    if state.mode != config.AppMode.DETECTION or not detector.is_trained():
        return FrameResult(frame=frame, detections=[], timestamp=timestamp)

    if not throttle.ready():
        return FrameResult(frame=frame, detections=last_detections, timestamp=timestamp)

    throttle.mark()
    detect_start = time.perf_counter()
    try:
        detections = detector.detect(frame)
    except Exception as e:
        logger.error(f"Detection error: {e}", exc_info=True)
        detections = []

    state.last_detection_ms = (time.perf_counter() - detect_start) * 1000.0
    state.detections_run += 1

    return FrameResult(frame=frame, detections=detections, timestamp=timestamp, fresh=True)


def detection_thread_fn(
    stop_event: threading.Event,
    capture_queue: queue.Queue,
    ui_queue: queue.Queue,
    detector: Detector,
    state: DetectionState,
    throttle: DetectionThrottle | None = None,
) -> None:
    """
    Detection thread: reads frames from capture_queue, runs throttled detection,
    pushes FrameResult objects to ui_queue.

    Only this thread calls detector.detect(), so at most one pass is in flight.
    Both queues hold a single item and the newest frame always wins.

    Args:
        stop_event: Event to signal thread shutdown
        capture_queue: Queue to receive captured frames
        ui_queue: Queue to send FrameResult objects
        detector: Detector to run (its store may be swapped by training)
        state: Shared mode and stats
        throttle: Detection interval gate (default: config.DETECTION_INTERVAL_MS)
    """
    logger.info(f"Detection thread started (mode={state.mode.value})")

    if throttle is None:
        throttle = DetectionThrottle()

    last_detections: list[Detection] = []
    detection_count = 0
    last_log_time = time.time()

    try:
        while not stop_event.is_set():
            try:
                frame = capture_queue.get(timeout=config.QUEUE_GET_TIMEOUT)
            except queue.Empty:
                continue

            result = process_frame(frame, detector, state, throttle, last_detections)
            last_detections = result.detections
            if result.fresh:
                detection_count += 1

            put_latest(ui_queue, result)

            # Log detection rate periodically
            current_time = time.time()
            if current_time - last_log_time >= 5.0:
                rate = detection_count / (current_time - last_log_time)
                logger.debug(
                    f"Detection rate: {rate:.1f}/s, last pass {state.last_detection_ms:.1f} ms, "
                    f"{len(last_detections)} detections, mode={state.mode.value}"
                )
                detection_count = 0
                last_log_time = current_time

    finally:
        logger.info("Detection thread stopped")


def start_capture_thread(
    stop_event: threading.Event,
    capture_queue: queue.Queue,
    camera_index: int = config.CAMERA_INDEX,
) -> threading.Thread:
    """
    Start the capture thread.

    Returns:
        The started thread object
    """
    thread = threading.Thread(
        target=capture_thread_fn,
        args=(stop_event, capture_queue, camera_index),
        name="CaptureThread",
        daemon=True,
    )
    thread.start()
    return thread


def start_detection_thread(
    stop_event: threading.Event,
    capture_queue: queue.Queue,
    ui_queue: queue.Queue,
    detector: Detector,
    state: DetectionState,
) -> threading.Thread:
    """
    Start the detection thread.

    Returns:
        The started thread object
    """
    thread = threading.Thread(
        target=detection_thread_fn,
        args=(stop_event, capture_queue, ui_queue, detector, state),
        name="DetectionThread",
        daemon=True,
    )
    thread.start()
    return thread
