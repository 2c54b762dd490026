"""Market data subsystem for PulseDash.

Public API:
    InstrumentPrice       - Reconciled per-symbol price dataclass
    PriceTick             - Normalized stream update
    Reconciler            - Thread-safe merge of snapshot and stream prices
    ResponseCache         - TTL-class cache for upstream responses
    SnapshotFetcher       - CoinGecko REST snapshot
    StreamClient          - Reconnecting push-feed client
    create_price_pipeline - Factory that wires poller + stream from settings
    create_stream_router  - FastAPI router factory for SSE / websocket endpoints
"""

from .cache import ResponseCache, TTLClass
from .factory import PricePipeline, create_price_pipeline
from .models import InstrumentPrice, PriceTick, SignificantMove, Source
from .reconciler import Reconciler
from .snapshot import SnapshotFetcher, SnapshotPoller
from .stream import create_stream_router
from .stream_client import ConnectionState, ReconnectPolicy, StreamClient

__all__ = [
    "ConnectionState",
    "InstrumentPrice",
    "PriceTick",
    "PricePipeline",
    "Reconciler",
    "ReconnectPolicy",
    "ResponseCache",
    "SignificantMove",
    "SnapshotFetcher",
    "SnapshotPoller",
    "Source",
    "StreamClient",
    "TTLClass",
    "create_price_pipeline",
    "create_stream_router",
]
