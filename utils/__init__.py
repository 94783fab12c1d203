from utils.exceptions import (
    CatalogImageError,
    CapReachedError,
    ConfigurationError,
    DownloadFailedError,
    DuplicateImageError,
    QualityRejectedError,
    StorageError,
    UnsupportedContentTypeError,
    UnsupportedFormatError,
)
from utils.log_config import get_logger
from utils.concurrency import (
    AtomicCounter,
    BoundedExecutor,
    RateLimiter,
    CircuitBreaker,
)
from utils.retry import backoff_delay, retry
from utils.text import normalise, sanitize_filename, tokenize
