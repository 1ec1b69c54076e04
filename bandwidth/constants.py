"""
Shared constants used across all bandwidth modules.

Centralises probe targets, default headers, and tunables so they live in
exactly one place.  Anything an operator may want to change is also exposed
through ``bandwidth.config``; the values here are the defaults.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "speedcheck/1.0 (+aiohttp)"

# Probes must never be served from an intermediate cache, and the body must
# arrive uncompressed so the byte count matches what crossed the link.
COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}

# ---------------------------------------------------------------------------
# Probe targets
# ---------------------------------------------------------------------------

DEFAULT_DOWNLOAD_URLS = [
    "https://speed.cloudflare.com/__down?bytes=5242880",   # 5 MiB
    "https://speed.cloudflare.com/__down?bytes=10485760",  # 10 MiB
    "https://speed.cloudflare.com/__down?bytes=20971520",  # 20 MiB
]

DEFAULT_FALLBACK_DOWNLOAD_URLS = [
    "https://httpbin.org/stream-bytes/1000000",  # 1 MB
    "https://httpbin.org/stream-bytes/2000000",  # 2 MB
    "https://httpbin.org/stream-bytes/5000000",  # 5 MB
]

DEFAULT_UPLOAD_URL = "https://httpbin.org/post"
DEFAULT_PING_URL = "https://speed.cloudflare.com/__down?bytes=0"
DEFAULT_LIBRESPEED_URL = "https://speedtest.ztm.gr/api.php"

# ---------------------------------------------------------------------------
# Method names
# ---------------------------------------------------------------------------

METHOD_PRIMARY = "primary"
METHOD_FALLBACK = "fallback"
METHOD_LIBRESPEED = "librespeed"
KNOWN_METHODS = (METHOD_PRIMARY, METHOD_FALLBACK, METHOD_LIBRESPEED)

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_PROBE_TIMEOUT = 15.0          # seconds per primary probe
DEFAULT_FALLBACK_PROBE_TIMEOUT = 10.0 # seconds per fallback probe
DEFAULT_PROBE_DELAY = 0.5             # pause between sequential probes
DEFAULT_PING_COUNT = 5
MIN_PROBE_TIMEOUT = 1.0
MAX_PROBE_TIMEOUT = 120.0
MIN_PROBE_DELAY = 0.0
MAX_PROBE_DELAY = 10.0
MIN_PING_COUNT = 0
MAX_PING_COUNT = 50

# Anything faster than this is below timer resolution for a real transfer.
MIN_ELAPSED_SECONDS = 0.001

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

CHUNK_SIZE = 64 * 1024                 # read size while draining a body
DEFAULT_UPLOAD_SIZES = [1024 * 1024]   # one 1 MiB upload probe
MAX_UPLOAD_SIZE = 50 * 1024 * 1024
UPLOAD_ENCODINGS = ("raw", "json")

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5000
MIN_PORT = 1
MAX_PORT = 65535
