"""Shared constants for page augmentation and the backend channel protocol."""

CONTROL_CLASS = "shopbridge-reviews-btn"
PROCESSED_MARKER_ATTR = "data-shopbridge-added"
CONTROL_TITLE_ATTR = "data-product-title"
CONTROL_URL_ATTR = "data-page-url"
CONTROL_ID_ATTR = "data-control-id"

CHANNEL_NAME = "rightpick_stream"
SEARCH_ACTION = "searchAndFetchReviews"

STATUS_PROGRESS = "progress"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"
TERMINAL_STATUSES = {STATUS_COMPLETE, STATUS_ERROR}

IDENTITY_SEPARATOR = "|"
GENERIC_HEADING_SELECTOR = "h1"

# Interactive-looking elements considered as anchors, in document order.
CANDIDATE_SELECTOR = ", ".join(
    (
        "button",
        "a",
        '[role="button"]',
        ".btn",
        '[class*="purchase-box"] button',
    )
)

LANDMARK_TAGS = ("header", "footer", "nav")

PURCHASE_KEYWORDS = (
    "خرید از ارزان‌ترین",
    "افزودن به سبد",
    "لیست فروشندگان",
    "خرید اینترنتی",
    "پیشنهاد قیمت",
    "خرید",
)

MIN_ANCHOR_TEXT_LENGTH = 3

CONTROL_COLOR_DEFAULT = "#8e24aa"
CONTROL_COLOR_ERROR = "#f44336"

DEFAULT_BACKEND_URL = "ws://127.0.0.1:8765"
DEFAULT_POLL_SECONDS = 3.0
DEFAULT_RETRY_DELAYS = (0.5, 1.5, 2.5)
DEFAULT_ERROR_HOLD_SECONDS = 3.0

OUTCOME_ROUTE_NOT_ELIGIBLE = "route_not_eligible"
OUTCOME_NO_TITLE = "no_title"
OUTCOME_NO_ANCHOR = "no_anchor"
OUTCOME_NOOP = "noop"
OUTCOME_ALREADY_PROCESSED = "already_processed"
OUTCOME_CREATED = "created"
OUTCOME_RACED = "raced"
OUTCOME_FAILED = "failed"
