"""Public-sector crawler package: config, shared types, and pipeline components."""

from .analysis import ContentAnalyzer
from .config import ConfigError, CrawlConfig, DomainConfig, SeedConfig, StealthConfig, load_config, save_config
from .dedup import ChangeDetector, content_hash
from .extractors import ExtractionPipeline, PageParser, ParsedPage, PdfTextConverter, build_extraction_pipeline
from .fetcher import StealthFetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .pipeline import CrawlPipeline
from .quality import QualityAssessment, QualityEngine
from .session import CrawlSession, SessionAggregator
from .stealth import Identity, IdentityPool, StealthController
from .storage import JsonlStorage, Persistence
from .types import (
    ContentAnalysis,
    ContentKind,
    ContentType,
    CrawlStage,
    CrawlTarget,
    DedupOutcome,
    DedupResult,
    ErrorRecord,
    ExtractedRecord,
    FetchFailure,
    FetchResult,
    PersistRecord,
    QualityScore,
    SessionStatus,
    TargetStatus,
    infer_content_kind,
    utc_now_iso,
)
from .url import DomainScope, discover_links, normalize_domain, normalize_url, resolve_url

__all__ = [
    "ChangeDetector",
    "ConfigError",
    "ContentAnalysis",
    "ContentAnalyzer",
    "ContentKind",
    "ContentType",
    "CrawlConfig",
    "CrawlPipeline",
    "CrawlSession",
    "CrawlStage",
    "CrawlTarget",
    "DedupOutcome",
    "DedupResult",
    "DomainConfig",
    "DomainScope",
    "EnqueueResult",
    "EnqueueStatus",
    "ErrorRecord",
    "ExtractedRecord",
    "ExtractionPipeline",
    "FetchFailure",
    "FetchResult",
    "Frontier",
    "Identity",
    "IdentityPool",
    "JsonlStorage",
    "PageParser",
    "ParsedPage",
    "PdfTextConverter",
    "PersistRecord",
    "Persistence",
    "QualityAssessment",
    "QualityEngine",
    "QualityScore",
    "SeedConfig",
    "SessionAggregator",
    "SessionStatus",
    "StealthConfig",
    "StealthController",
    "StealthFetcher",
    "TargetStatus",
    "build_extraction_pipeline",
    "content_hash",
    "discover_links",
    "infer_content_kind",
    "load_config",
    "normalize_domain",
    "normalize_url",
    "resolve_url",
    "save_config",
    "utc_now_iso",
]
