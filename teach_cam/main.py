"""
Main entry point for Teach Cam.
Orchestrates the pipeline, the labeling UI and the model catalog.
"""

import threading
import queue
import logging
import sys
import sqlite3
import time
import argparse
from dataclasses import dataclass, field
from datetime import datetime

import cv2
import numpy as np

from . import config
from . import db
from .detection import Detection, TemplateDetector
from .imaging import DecodeError, encode_image
from .mapping import EMPTY_RECT, Rect, image_to_viewport, viewport_to_image
from .overlay import (
    best_confidence,
    build_overlays,
    confidence_color,
    draw_box,
    draw_overlays,
    render_letterboxed,
)
from .pipeline import DetectionState, FrameResult, start_capture_thread, start_detection_thread
from .templates import LabeledSample, TrainingError

logger = logging.getLogger(__name__)


@dataclass
class Selection:
    """A box being dragged over a frozen frame, in viewport coordinates."""
    frame: np.ndarray
    start: tuple[int, int]
    end: tuple[int, int]
    dragging: bool = True

    @property
    def viewport_rect(self) -> Rect:
        return Rect.from_points(*self.start, *self.end)

    def image_rect(self, display_size: tuple[int, int]) -> Rect:
        """The selection mapped into pixel coordinates of the frozen frame."""
        height, width = self.frame.shape[:2]
        return viewport_to_image(self.viewport_rect, (width, height), display_size)


@dataclass
class UiState:
    """Everything the UI loop and the mouse callback share."""
    detection_state: DetectionState
    display_size: tuple[int, int] = config.DISPLAY_SIZE
    samples: list[LabeledSample] = field(default_factory=list)
    selection: Selection | None = None
    last_raw_frame: np.ndarray | None = None
    last_detections: list[Detection] = field(default_factory=list)
    active_model: str | None = None
    message: str | None = None
    message_expire_time: float = 0.0

    def show_message(self, message: str) -> None:
        self.message = message
        self.message_expire_time = time.time() + config.MESSAGE_DURATION
        logger.info(message)


def on_mouse(event, x, y, flags, ui: UiState) -> None:
    """
    Mouse callback: drag a selection box in training mode.

    The frame under the cursor is frozen on button press so the box is
    recorded against exactly the image the operator saw.
    """
    if ui.detection_state.mode != config.AppMode.TRAINING:
        return

    if event == cv2.EVENT_LBUTTONDOWN:
        if ui.last_raw_frame is None:
            return
        ui.selection = Selection(frame=ui.last_raw_frame.copy(), start=(x, y), end=(x, y))

    elif event == cv2.EVENT_MOUSEMOVE and ui.selection is not None and ui.selection.dragging:
        ui.selection.end = (x, y)

    elif event == cv2.EVENT_LBUTTONUP and ui.selection is not None and ui.selection.dragging:
        ui.selection.end = (x, y)
        ui.selection.dragging = False
        box = ui.selection.image_rect(ui.display_size)
        ui.show_message(f"Image box: X={box.x}, Y={box.y}, W={box.width}, H={box.height}")


def draw_hud(canvas: np.ndarray, ui: UiState) -> np.ndarray:
    """
    Draw HUD overlay on the display canvas.

    Shows mode, active model, sample counts and the best detection confidence.
    """
    x, y = config.HUD_POSITION
    line_height = config.HUD_LINE_HEIGHT
    state = ui.detection_state

    labels = sorted({s.label_name for s in ui.samples})
    lines = [
        (f"Teach Cam  [{state.mode.value.upper()}]", config.HUD_COLOR),
        (f"Model: {ui.active_model or '(none)'}", config.HUD_COLOR),
        (f"Samples: {len(ui.samples)}  Labels: {', '.join(labels) or '-'}", config.HUD_COLOR),
    ]

    if state.mode == config.AppMode.DETECTION:
        confidence = best_confidence(ui.last_detections)
        lines.append((
            f"Best match: {confidence:.1%}  ({state.last_detection_ms:.0f} ms)",
            confidence_color(confidence),
        ))

    for index, (text, color) in enumerate(lines):
        cv2.putText(
            canvas,
            text,
            (x, y + line_height * index),
            config.HUD_FONT,
            config.HUD_FONT_SCALE,
            color,
            config.HUD_THICKNESS,
            cv2.LINE_AA,
        )

    return canvas


def draw_message(canvas: np.ndarray, message: str) -> np.ndarray:
    """Draw a temporary message overlay on the canvas."""
    cv2.putText(
        canvas,
        message,
        config.MESSAGE_POSITION,
        config.HUD_FONT,
        config.MESSAGE_FONT_SCALE,
        config.MESSAGE_COLOR,
        config.HUD_THICKNESS,
        cv2.LINE_AA,
    )
    return canvas


def render(ui: UiState) -> np.ndarray | None:
    """Compose the display canvas for the current UI state."""
    if ui.selection is not None:
        # Labeling: show the frozen frame with the box snapped to image pixels
        frame = ui.selection.frame
        canvas = render_letterboxed(frame, ui.display_size)
        height, width = frame.shape[:2]
        if ui.selection.dragging:
            rect = ui.selection.viewport_rect
        else:
            rect = image_to_viewport(ui.selection.image_rect(ui.display_size), (width, height), ui.display_size)
        if rect != EMPTY_RECT:
            draw_box(canvas, rect, config.SELECTION_BOX_COLOR)
    elif ui.last_raw_frame is not None:
        frame = ui.last_raw_frame
        canvas = render_letterboxed(frame, ui.display_size)
        if ui.detection_state.mode == config.AppMode.DETECTION:
            height, width = frame.shape[:2]
            overlays = build_overlays(ui.last_detections, (width, height), ui.display_size)
            draw_overlays(canvas, overlays)
    else:
        return None

    draw_hud(canvas, ui)
    if ui.message and time.time() < ui.message_expire_time:
        draw_message(canvas, ui.message)
    return canvas


def set_mode(ui: UiState, mode: config.AppMode, detector: TemplateDetector) -> None:
    """Switch app mode; detection requires a trained detector."""
    if mode == config.AppMode.DETECTION and not detector.is_trained():
        ui.show_message("Train or activate a model first")
        return

    ui.selection = None
    ui.last_detections = []
    ui.detection_state.mode = mode
    ui.show_message(f"Mode: {mode.value}")


def label_selection(ui: UiState) -> None:
    """Prompt for a label and store the current selection as a training sample."""
    selection = ui.selection
    if selection is None or selection.dragging:
        ui.show_message("Drag a box around the object first")
        return

    box = selection.image_rect(ui.display_size)
    if box.is_empty:
        ui.show_message("Selected area is empty")
        return

    label = input("Label name: ").strip()
    if not label:
        ui.show_message("Label name is required")
        return

    try:
        image_data = encode_image(selection.frame, config.SAMPLE_IMAGE_EXT)
    except DecodeError as e:
        ui.show_message(f"Could not encode frame: {e}")
        return

    sample = LabeledSample(label_name=label, image_data=image_data, bounding_box=box)
    ui.samples.append(sample)
    ui.selection = None
    ui.show_message(f"Added sample: {sample}")


def train_and_save(ui: UiState, detector: TemplateDetector, db_path: str) -> None:
    """Train from the collected samples and save them as a new active model."""
    if not ui.samples:
        ui.show_message("No samples to train")
        return

    default_name = f"model_{datetime.now():%Y%m%d_%H%M%S}"
    name = input(f"Model name [{default_name}]: ").strip() or default_name

    try:
        count = detector.train(ui.samples)
    except TrainingError as e:
        ui.active_model = None
        ui.show_message(f"Training failed: {e}")
        return

    conn = db.connect(db_path)
    try:
        db.save_model(conn, name, ui.samples, activate=True)
    except sqlite3.IntegrityError:
        ui.active_model = None
        ui.show_message(f"Trained {count} templates (unsaved), model '{name}' already exists")
        return
    finally:
        conn.close()

    ui.active_model = name
    ui.show_message(f"Model '{name}' saved: {len(ui.samples)} samples, {count} templates")


def activate_model(ui: UiState, detector: TemplateDetector, db_path: str, model_id: int) -> bool:
    """Retrain the detector from a saved model and mark it active."""
    conn = db.connect(db_path)
    try:
        model = db.get_model(conn, model_id)
        samples = db.load_samples(conn, model.id)
        count = detector.train(samples)
        db.activate_model(conn, model.id)
    except db.ModelNotFoundError as e:
        ui.show_message(f"Could not activate model: {e}")
        return False
    except TrainingError as e:
        ui.active_model = None
        ui.show_message(f"Could not activate model: {e}")
        return False
    finally:
        conn.close()

    ui.active_model = model.name
    ui.samples = list(samples)
    ui.show_message(f"Model '{model.name}' active: {count} templates")
    return True


def next_model(ui: UiState, detector: TemplateDetector, db_path: str) -> None:
    """Activate the saved model after the current one, wrapping around."""
    conn = db.connect(db_path)
    try:
        models = db.list_models(conn)
    finally:
        conn.close()

    if not models:
        ui.show_message("No saved models")
        return

    names = [m.name for m in models]
    index = names.index(ui.active_model) + 1 if ui.active_model in names else 0
    activate_model(ui, detector, db_path, models[index % len(models)].id)


def ui_loop(
    stop_event: threading.Event,
    ui_queue: queue.Queue,
    detector: TemplateDetector,
    ui: UiState,
    db_path: str,
) -> None:
    """
    Main UI loop - MUST run in main thread for OpenCV.

    This loop:
    - Reads FrameResult objects from ui_queue
    - Renders the letterboxed frame, detection overlays, selection box and HUD
    - Handles keyboard input
    - Shows the canvas via cv2.imshow

    Args:
        stop_event: Event to signal shutdown to other threads
        ui_queue: Queue to receive FrameResult objects
        detector: Detector to train and activate
        ui: Shared UI state
        db_path: Model catalog path
    """
    logger.info("UI loop started")

    cv2.namedWindow(config.WINDOW_NAME, cv2.WINDOW_AUTOSIZE)
    cv2.setMouseCallback(config.WINDOW_NAME, on_mouse, ui)

    quit_pending = False
    quit_expire_time = 0.0

    try:
        while not stop_event.is_set():
            try:
                result: FrameResult = ui_queue.get(timeout=config.QUEUE_GET_TIMEOUT)
                ui.last_raw_frame = result.frame
                ui.last_detections = result.detections
            except queue.Empty:
                pass

            canvas = render(ui)
            if canvas is not None:
                cv2.imshow(config.WINDOW_NAME, canvas)

            if quit_pending and time.time() >= quit_expire_time:
                quit_pending = False
                logger.info("Quit cancelled (timeout)")

            key = cv2.waitKey(1) & 0xFF
            if key == 255:  # No key pressed
                continue

            if key == config.KEY_QUIT:
                if quit_pending:
                    logger.info("Quit confirmed, initiating shutdown")
                    stop_event.set()
                    break
                quit_pending = True
                quit_expire_time = time.time() + config.QUIT_CONFIRM_TIMEOUT
                ui.show_message("Press Q again to quit")

            elif quit_pending:
                quit_pending = False
                logger.info("Quit cancelled")

            elif key == config.KEY_TRAINING_MODE:
                set_mode(ui, config.AppMode.TRAINING, detector)

            elif key == config.KEY_DETECTION_MODE:
                set_mode(ui, config.AppMode.DETECTION, detector)

            elif key == config.KEY_IDLE_MODE:
                set_mode(ui, config.AppMode.IDLE, detector)

            elif key == config.KEY_LABEL and ui.detection_state.mode == config.AppMode.TRAINING:
                label_selection(ui)

            elif key == config.KEY_UNDO and ui.samples:
                removed = ui.samples.pop()
                ui.show_message(f"Removed sample: {removed}")

            elif key == config.KEY_TRAIN:
                train_and_save(ui, detector, db_path)

            elif key == config.KEY_NEXT_MODEL:
                next_model(ui, detector, db_path)

    finally:
        cv2.destroyAllWindows()
        logger.info("UI loop stopped, windows destroyed")


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Teach Cam - label objects on a live camera feed and detect them by template matching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Controls:
  t  training mode: drag a box, press l to label it, u to undo
  k  train from collected samples and save the model
  d  detection mode
  m  activate the next saved model
  i  idle
  q  quit (press twice)
        """
    )
    parser.add_argument("--camera", type=int, default=config.CAMERA_INDEX,
                        help=f"Camera index (default: {config.CAMERA_INDEX})")
    parser.add_argument("--db", type=str, default=config.DB_PATH,
                        help=f"Model catalog path (default: {config.DB_PATH})")
    parser.add_argument("--threshold", type=float, default=config.MATCH_THRESHOLD,
                        help=f"Minimum match score (default: {config.MATCH_THRESHOLD})")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point for Teach Cam.

    Returns:
        Exit code (0 for success)
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    args = parse_args(argv)

    logger.info("=" * 60)
    logger.info("Teach Cam")
    logger.info("=" * 60)

    db.init_db(args.db)

    detector = TemplateDetector(threshold=args.threshold)
    ui = UiState(detection_state=DetectionState())

    # Resume the active model from the last run
    conn = db.connect(args.db)
    try:
        active = db.get_active_model(conn)
    finally:
        conn.close()
    if active is not None and activate_model(ui, detector, args.db, active.id):
        ui.detection_state.mode = config.AppMode.DETECTION

    stop_event = threading.Event()
    capture_queue = queue.Queue(maxsize=config.CAPTURE_QUEUE_SIZE)
    ui_queue = queue.Queue(maxsize=config.UI_QUEUE_SIZE)

    logger.info("Starting worker threads...")
    capture_thread = start_capture_thread(stop_event, capture_queue, args.camera)
    detection_thread = start_detection_thread(
        stop_event, capture_queue, ui_queue, detector, ui.detection_state
    )

    # Run UI loop in main thread (required by OpenCV)
    try:
        ui_loop(stop_event, ui_queue, detector, ui, args.db)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        stop_event.set()
    except Exception as e:
        logger.error(f"Error in UI loop: {e}", exc_info=True)
        stop_event.set()

    logger.info("Shutting down...")
    stop_event.set()

    for name, thread in [("Capture", capture_thread), ("Detection", detection_thread)]:
        thread.join(timeout=config.THREAD_JOIN_TIMEOUT)
        if thread.is_alive():
            logger.warning(f"{name} thread did not stop cleanly")
        else:
            logger.info(f"{name} thread stopped")

    logger.info("Teach Cam shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
