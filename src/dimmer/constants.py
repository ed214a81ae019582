"""Shared constants for overlay matching, markers and tuning defaults."""

MARKER_ATTRIBUTE = "data-yt-opacity-reduced"
MARKER_VALUE = "true"

STYLE_ELEMENT_ID = "yt-opacity-reducer-styles"

# Candidate overlays: end-screen cards and the Shorts metadata panel.
MATCH_PATTERNS = (
    ".ytp-ce-element-show",
    ".ytReelMetapanelViewModelHost",
)

# Player chrome. Nothing inside these is ever suppressed.
PROTECTED_ZONE_SELECTORS = (
    ".ytp-chrome-bottom",
    ".ytp-chrome-top",
    ".ytp-chrome-controls",
    ".ytp-gradient-bottom",
    ".ytp-gradient-top",
    ".ytp-progress-bar-container",
)

AUTOHIDE_CLASS = "ytp-autohide"

HOST_HIDDEN_CLASSES = (
    "ytp-ce-element-hide",
    AUTOHIDE_CLASS,
)

HOST_HIDDEN_ATTRIBUTES = (("aria-hidden", "true"),)

# Narrowest known roots for mutation observation, most specific first.
CONTENT_ROOT_SELECTORS = (
    "ytd-app",
    "#content",
)

ALLOWED_HOST_SUFFIXES = (
    "youtube.com",
    "youtube-nocookie.com",
)

DEFAULT_ENABLED = True
DEFAULT_OPACITY = 0.3

MIN_DELAY_MS = 1000.0
MAX_DELAY_MS = 10000.0
GROWTH_FACTOR = 1.5
EMPTY_ROUNDS_BEFORE_BACKOFF = 2
MUTATION_DELAY_MS = 250.0
SETTLE_DELAY_MS = 100.0
INITIAL_DELAY_MS = 1000.0
POLL_MS = 50

HOVER_MODES = ("rule", "override")
