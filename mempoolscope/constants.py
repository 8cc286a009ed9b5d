"""Constants used throughout the mempoolscope package."""

# Bitcoin unit conversions
SATOSHIS_PER_BTC = 100_000_000  # 1e8
WEIGHT_TO_VSIZE_RATIO = 4  # Weight units per virtual byte (pre-SegWit size * 4)

# Upstream API
DEFAULT_BASE_URL = "https://mempool.space/api"
NETWORK_ENDPOINTS = {
    "Mainnet": "https://mempool.space/api",
    "Testnet": "https://mempool.space/testnet/api",
    "Signet": "https://mempool.space/signet/api",
}
DEFAULT_NETWORK = "Mainnet"

# Network timeouts
DEFAULT_CONNECT_TIMEOUT_SECS = 30
DEFAULT_RESOURCE_TIMEOUT_SECS = 60
DEFAULT_HTTP_TIMEOUT_SECS = 10  # webhook posts
DOWNLOAD_CHUNK_BYTES = 65_536

# Cache / refresh defaults
DEFAULT_CACHE_DIR = "cache"
DEFAULT_CACHE_DURATION_MINS = 5
DEFAULT_REFRESH_INTERVAL_SECS = 60
CACHE_TIMESTAMP_SUFFIX = ".ts"

# Price tracking
DEFAULT_BTC_PRICE_USD = 65_000.0
PRICE_UPDATE_INTERVAL_SECS = 300  # 5 minutes

# Fee bands (sat/vB)
LOW_FEE_MAX_SATVB = 3.0  # exclusive
HIGH_FEE_MIN_SATVB = 8.0  # inclusive
MIN_ITEMS_PER_BAND = 10
MAX_SYNTHETIC_ITEMS = 300
MIN_VISUALIZATION_ITEMS = 100
AVG_TX_VSIZE = 500  # vB, used to estimate tx counts from a fee histogram

# Placeholders
PLACEHOLDER_INPUT_LABEL = "Unknown Input"
PLACEHOLDER_OUTPUT_LABEL = "Unknown Output"
PLACEHOLDER_AMOUNT_SATS = 1000

# Page size for block transaction listings
BLOCK_TXS_PER_PAGE = 15

# Notification thresholds
CONGESTION_TX_THRESHOLD = 15_000
FEE_CHANGE_ALERT_PCT = 20.0

# Log rotation defaults
DEFAULT_LOG_MAX_BYTES = 10_485_760  # 10MB
DEFAULT_LOG_BACKUP_COUNT = 30
DEFAULT_LOG_FILE = "mempoolscope.log"
DEFAULT_ERROR_LOG_FILE = "mempoolscope-error.log"
