"""Default values shared by config, scheduling, fetching and scoring."""

from __future__ import annotations


JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")

DEFAULT_MAX_DEPTH = 15
DEFAULT_MAX_URLS = 10_000
DEFAULT_MAX_DURATION_SECONDS: float | None = None
DEFAULT_CONCURRENCY = 3
DEFAULT_DOMAIN_QUOTA = 5_000
DEFAULT_SEED_PRIORITY = 10.0
DEFAULT_CHECKPOINT_INTERVAL = 50

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF_BASE_SECONDS = 2.0
DEFAULT_RETRY_BACKOFF_MULTIPLIER = 2.0
DEFAULT_RETRY_JITTER_SECONDS = 1.0
DEFAULT_TIMEOUT_RANGE_SECONDS = (15.0, 30.0)

DEFAULT_RECRAWL_ENABLED = False
DEFAULT_CROSS_SESSION_DEDUP = False

MIN_PRIORITY = 1.0
MAX_PRIORITY = 20.0

# Stealth timing (seconds unless noted).
DEFAULT_MIN_DELAY = 2.0
DEFAULT_MAX_DELAY = 5.0
DEFAULT_DELAY_FLOOR = 0.8
DEFAULT_BURST_FLOOR_PER_REQUEST = 1.5
DEFAULT_BURST_PENALTY_RANGE = (1.0, 3.0)
DEFAULT_LOW_SUCCESS_RATE = 0.8
DEFAULT_LOW_SUCCESS_MULTIPLIER = 1.5
DEFAULT_JITTER_RANGE = (-0.2, 0.8)
DEFAULT_LONG_PAUSE_PROBABILITY = 0.08
DEFAULT_LONG_PAUSE_RANGE = (3.0, 8.0)
DEFAULT_BREAK_EVERY_RANGE = (80, 120)
DEFAULT_BREAK_DURATION_RANGE = (5.0, 15.0)
DEFAULT_SESSION_BREAK_EVERY_SECONDS = 1_800.0
DEFAULT_SESSION_BREAK_DURATION_RANGE = (30.0, 120.0)
DEFAULT_SUCCESS_WINDOW = 50
DEFAULT_DNT_PROBABILITY = 0.5
DEFAULT_REFERRER_PROBABILITY = 0.7

DEFAULT_QUALITY_THRESHOLD = 40.0
DEFAULT_QUALITY_THRESHOLDS: dict[str, float] = {
    "planning": 70.0,
    "meetings": 65.0,
    "transparency": 75.0,
    "finance": 70.0,
    "services": 50.0,
    "consultations": 60.0,
    "documents": 55.0,
    "general": 40.0,
}

QUALITY_WEIGHTS: dict[str, float] = {
    "content_quality": 0.25,
    "structured_data_presence": 0.30,
    "recency": 0.15,
    "completeness": 0.15,
    "reliability": 0.15,
}

CATEGORY_PRIORITIES: dict[str, float] = {
    "meetings": 9.0,
    "planning": 8.0,
    "transparency": 8.0,
    "finance": 7.0,
    "services": 6.0,
    "consultations": 5.0,
    "documents": 4.0,
    "general": 3.0,
}

DEFAULT_ALLOWED_FILE_TYPES = (
    ".pdf",
    ".csv",
    ".xlsx",
    ".xls",
    ".docx",
    ".doc",
    ".txt",
    ".json",
    ".xml",
)

DEFAULT_DATA_RICH_PATHS = (
    "/open-data",
    "/transparency",
    "/spending",
    "/budget",
    "/statistics",
    "/performance",
    "/planning",
    "/council-meetings",
)

# Query keys that never change page content; `*` matches any suffix.
DEFAULT_IGNORED_QUERY_PARAMS = (
    "utm_*",
    "fbclid",
    "gclid",
    "msclkid",
    "mc_cid",
    "mc_eid",
    "_ga",
    "jsessionid",
    "phpsessid",
    "aspsessionid*",
    "cachebust",
)

USER_AGENTS: dict[str, tuple[str, ...]] = {
    "chrome": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    ),
    "firefox": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:125.0) Gecko/20100101 Firefox/125.0",
    ),
    "safari": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4_1) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.4.1 Safari/605.1.15",
    ),
}

BROWSER_HEADER_PROFILES: dict[str, dict[str, str]] = {
    "chrome": {
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "image/avif,image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Encoding": "gzip, deflate",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    },
    "firefox": {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Encoding": "gzip, deflate",
        "Upgrade-Insecure-Requests": "1",
    },
    "safari": {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Encoding": "gzip, deflate",
    },
}

ACCEPT_LANGUAGES = (
    "en-GB,en;q=0.9",
    "en-GB,en-US;q=0.9,en;q=0.8",
    "en-US,en;q=0.9,en-GB;q=0.8",
)

REFERRER_SITES = (
    "https://www.google.co.uk/",
    "https://www.bing.com/",
    "https://duckduckgo.com/",
)
