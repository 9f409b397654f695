"""
Idea Archiver - Application constants.

Centralizes magic numbers and fixed strings for clarity and maintainability.
"""

# Time
MILLISECONDS_PER_SECOND = 1000

# Archive layout: <root>/<YYYY>/<MonthName>/<D> <MonthName> <YYYY>.png
IMAGE_EXTENSION = ".png"
HIDDEN_FILE_PREFIX = "."
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

# Delivery pacing. Discord allows roughly 30 webhook messages per minute.
DEFAULT_DELAY_SECONDS = 2.0
DEFAULT_RATE_LIMIT_COOLDOWN_SECONDS = 60
DEFAULT_REQUEST_TIMEOUT = 60
# Longest pause a server retry_after hint may impose.
MAX_RETRY_AFTER_SECONDS = 900

# Webhook message defaults
EMBED_TITLE = "\U0001f4a1 Idea of the Day"
EMBED_DESCRIPTION = (
    "**{date}**\n\n"
    "Fresh startup idea captured from "
    "[Ideabrowser.com](https://www.ideabrowser.com/)"
)
EMBED_FOOTER = "\U0001f680 Awesome Idea of the Day Archive"
EMBED_COLOR = 0x5865F2  # Discord blurple
DEFAULT_USERNAME = "Idea Bot"
DEFAULT_AVATAR_URL = "https://www.ideabrowser.com/favicon.ico"
ATTACHMENT_DESCRIPTION = "Idea of the Day - {date}"

# Capture
DEFAULT_CAPTURE_URL = "https://www.ideabrowser.com/"
DEFAULT_VIEWPORT_WIDTH = 1920
DEFAULT_VIEWPORT_HEIGHT = 1080
DEFAULT_DEVICE_SCALE_FACTOR = 2
DEFAULT_NAVIGATION_TIMEOUT = 30
DEFAULT_SETTLE_SECONDS = 3
