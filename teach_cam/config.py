"""
Configuration constants for Teach Cam.
"""

from enum import Enum

# Video capture settings
RESOLUTION = (640, 480)  # Width x Height
TARGET_FPS = 30

# Camera settings
CAMERA_INDEX = 0  # Default camera
CAMERA_OPEN_ATTEMPTS = 3  # Slow devices sometimes need a few tries
CAMERA_RETRY_DELAY = 0.2  # seconds between open attempts

# Model catalog settings
DB_PATH = "teach_cam.db"  # SQLite database file path

# Queue settings
CAPTURE_QUEUE_SIZE = 1
UI_QUEUE_SIZE = 1


class AppMode(str, Enum):
    """What the live app is doing with incoming frames."""
    IDLE = "idle"            # Camera stopped, nothing happens
    TRAINING = "training"    # Operator draws and labels example boxes
    DETECTION = "detection"  # Trained templates are matched against frames


DEFAULT_APP_MODE = AppMode.TRAINING

# Template matching settings
MATCH_THRESHOLD = 0.6  # Minimum normalized correlation score for a hit
NMS_OVERLAP_THRESHOLD = 0.3  # IoU at or above which same-label hits are merged
MIN_TEMPLATE_SIZE = 10  # Minimum template width/height in pixels

# Detection throttling
DETECTION_INTERVAL_MS = 200  # At most one detection pass per interval (~5/s)

# Sample encoding
SAMPLE_IMAGE_EXT = ".png"

# Display settings
DISPLAY_SIZE = (960, 600)  # Canvas the camera frame is letterboxed into
LETTERBOX_COLOR = (0, 0, 0)
WINDOW_NAME = "Teach Cam"

# Overlay settings
DETECTION_BOX_COLOR = (0, 255, 0)  # Lime in BGR
SELECTION_BOX_COLOR = (0, 0, 255)  # Red in BGR
BOX_THICKNESS = 2
CAPTION_FONT = 0  # cv2.FONT_HERSHEY_SIMPLEX
CAPTION_FONT_SCALE = 0.5
CAPTION_OFFSET = 25  # Pixels above the box for the caption

# HUD settings
HUD_POSITION = (10, 30)  # x, y position for HUD text
HUD_LINE_HEIGHT = 25  # Pixels between HUD lines
HUD_FONT = 0  # cv2.FONT_HERSHEY_SIMPLEX
HUD_FONT_SCALE = 0.6
HUD_COLOR = (0, 255, 0)  # Green in BGR
HUD_THICKNESS = 2

# Confidence read-out colors (BGR), picked by best confidence
CONFIDENCE_HIGH = 0.8
CONFIDENCE_MEDIUM = 0.6
CONFIDENCE_HIGH_COLOR = (113, 204, 46)
CONFIDENCE_MEDIUM_COLOR = (15, 196, 241)
CONFIDENCE_LOW_COLOR = (60, 76, 231)

# Message overlay settings
MESSAGE_DURATION = 2.0  # seconds to show temporary messages
MESSAGE_FONT_SCALE = 0.7
MESSAGE_COLOR = (0, 255, 255)  # Yellow in BGR
MESSAGE_POSITION = (10, 130)  # Below HUD

# Quit confirmation settings
QUIT_CONFIRM_TIMEOUT = 2.0  # seconds to wait for second 'q' press

# Thread settings
THREAD_JOIN_TIMEOUT = 2.0  # seconds
QUEUE_GET_TIMEOUT = 0.1  # seconds

# Hotkeys
KEY_QUIT = ord('q')
KEY_TRAINING_MODE = ord('t')
KEY_DETECTION_MODE = ord('d')
KEY_IDLE_MODE = ord('i')
KEY_LABEL = ord('l')
KEY_UNDO = ord('u')
KEY_TRAIN = ord('k')
KEY_NEXT_MODEL = ord('m')
