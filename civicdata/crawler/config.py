"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_ALLOWED_FILE_TYPES,
    DEFAULT_BREAK_DURATION_RANGE,
    DEFAULT_BREAK_EVERY_RANGE,
    DEFAULT_BURST_FLOOR_PER_REQUEST,
    DEFAULT_BURST_PENALTY_RANGE,
    DEFAULT_CHECKPOINT_INTERVAL,
    DEFAULT_CONCURRENCY,
    DEFAULT_CROSS_SESSION_DEDUP,
    DEFAULT_DATA_RICH_PATHS,
    DEFAULT_DELAY_FLOOR,
    DEFAULT_DNT_PROBABILITY,
    DEFAULT_DOMAIN_QUOTA,
    DEFAULT_IGNORED_QUERY_PARAMS,
    DEFAULT_JITTER_RANGE,
    DEFAULT_LONG_PAUSE_PROBABILITY,
    DEFAULT_LONG_PAUSE_RANGE,
    DEFAULT_LOW_SUCCESS_MULTIPLIER,
    DEFAULT_LOW_SUCCESS_RATE,
    DEFAULT_MAX_DELAY,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_DURATION_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_URLS,
    DEFAULT_MIN_DELAY,
    DEFAULT_QUALITY_THRESHOLD,
    DEFAULT_QUALITY_THRESHOLDS,
    DEFAULT_RECRAWL_ENABLED,
    DEFAULT_REFERRER_PROBABILITY,
    DEFAULT_RETRY_BACKOFF_BASE_SECONDS,
    DEFAULT_RETRY_BACKOFF_MULTIPLIER,
    DEFAULT_RETRY_JITTER_SECONDS,
    DEFAULT_SEED_PRIORITY,
    DEFAULT_SESSION_BREAK_DURATION_RANGE,
    DEFAULT_SESSION_BREAK_EVERY_SECONDS,
    DEFAULT_SUCCESS_WINDOW,
    DEFAULT_TIMEOUT_RANGE_SECONDS,
    JSON_INDENT,
    MAX_PRIORITY,
    MIN_PRIORITY,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import JSONDict, JSONValue
from .url import DomainScope, normalize_domain, normalize_url


class ConfigError(ValueError):
    """Fatal configuration problem detected before any crawling starts."""


def _as_float(value: Any, key: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Invalid bool for '{key}': {value!r}")


def _as_range(value: Any, key: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ConfigError(f"'{key}' must be a [low, high] pair, got {value!r}")
    low = _as_float(value[0], key)
    high = _as_float(value[1], key)
    if low is None or high is None:
        raise ConfigError(f"'{key}' bounds cannot be null")
    if low > high:
        raise ConfigError(f"'{key}' lower bound {low} exceeds upper bound {high}")
    return (low, high)


@dataclass(frozen=True, slots=True)
class SeedConfig:
    """One `{url, category, priority}` seed entry."""

    url: str
    category: str | None = None
    priority: float = DEFAULT_SEED_PRIORITY

    def to_json(self) -> JSONDict:
        return {"url": self.url, "category": self.category, "priority": self.priority}


@dataclass(frozen=True, slots=True)
class DomainConfig:
    """Allow-listed domain with its hard dispatch quota."""

    domain: str
    quota: int = DEFAULT_DOMAIN_QUOTA

    def to_json(self) -> JSONDict:
        return {"domain": self.domain, "quota": self.quota}


@dataclass(frozen=True, slots=True)
class StealthConfig:
    """Timing and fingerprint knobs for the stealth fetch layer."""

    min_delay: float = DEFAULT_MIN_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    delay_floor: float = DEFAULT_DELAY_FLOOR
    burst_floor_per_request: float = DEFAULT_BURST_FLOOR_PER_REQUEST
    burst_penalty_range: tuple[float, float] = DEFAULT_BURST_PENALTY_RANGE
    low_success_rate: float = DEFAULT_LOW_SUCCESS_RATE
    low_success_multiplier: float = DEFAULT_LOW_SUCCESS_MULTIPLIER
    jitter_range: tuple[float, float] = DEFAULT_JITTER_RANGE
    long_pause_probability: float = DEFAULT_LONG_PAUSE_PROBABILITY
    long_pause_range: tuple[float, float] = DEFAULT_LONG_PAUSE_RANGE
    break_every_range: tuple[float, float] = DEFAULT_BREAK_EVERY_RANGE
    break_duration_range: tuple[float, float] = DEFAULT_BREAK_DURATION_RANGE
    session_break_every_seconds: float | None = DEFAULT_SESSION_BREAK_EVERY_SECONDS
    session_break_duration_range: tuple[float, float] = DEFAULT_SESSION_BREAK_DURATION_RANGE
    success_window: int = DEFAULT_SUCCESS_WINDOW
    dnt_probability: float = DEFAULT_DNT_PROBABILITY
    referrer_probability: float = DEFAULT_REFERRER_PROBABILITY

    def __post_init__(self) -> None:
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ConfigError(
                f"Invalid delay window: min_delay={self.min_delay}, max_delay={self.max_delay}"
            )
        if self.delay_floor < 0:
            raise ConfigError("delay_floor must be >= 0")
        if self.success_window <= 0:
            raise ConfigError("success_window must be > 0")
        if self.break_every_range[0] <= 0:
            raise ConfigError("break_every_range must be positive")
        for key in ("low_success_rate", "long_pause_probability", "dnt_probability", "referrer_probability"):
            value = getattr(self, key)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{key} must be within [0, 1], got {value}")

    @classmethod
    def instant(cls) -> "StealthConfig":
        """Zero-delay profile with breaks disabled, for tests and dry runs."""

        return cls(
            min_delay=0.0,
            max_delay=0.0,
            delay_floor=0.0,
            burst_floor_per_request=0.0,
            burst_penalty_range=(0.0, 0.0),
            jitter_range=(0.0, 0.0),
            long_pause_probability=0.0,
            long_pause_range=(0.0, 0.0),
            break_every_range=(1_000_000, 1_000_000),
            break_duration_range=(0.0, 0.0),
            session_break_every_seconds=None,
            session_break_duration_range=(0.0, 0.0),
        )

    def to_json(self) -> JSONDict:
        payload: JSONDict = {}
        for item in fields(self):
            value = getattr(self, item.name)
            payload[item.name] = list(value) if isinstance(value, tuple) else value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StealthConfig":
        known = {item.name for item in fields(cls)}
        unknown = set(payload) - known
        if unknown:
            raise ConfigError(f"Unknown stealth settings: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, value in payload.items():
            if key.endswith("_range"):
                kwargs[key] = _as_range(value, key)
            elif key == "success_window":
                kwargs[key] = _as_int(value, key)
            else:
                kwargs[key] = _as_float(value, key)
        return cls(**kwargs)


def _coerce_seed(value: Any) -> SeedConfig:
    if isinstance(value, SeedConfig):
        return value
    if isinstance(value, str):
        return SeedConfig(url=value.strip())
    if isinstance(value, Mapping):
        url = str(value.get("url", "")).strip()
        if not url:
            raise ConfigError(f"Seed entry missing 'url': {value!r}")
        category = value.get("category")
        priority = _as_float(value.get("priority", DEFAULT_SEED_PRIORITY), "priority")
        return SeedConfig(
            url=url,
            category=None if category is None else str(category).strip().lower(),
            priority=DEFAULT_SEED_PRIORITY if priority is None else priority,
        )
    raise ConfigError(f"Unsupported seed value: {value!r}")


def _coerce_domain_config(value: Any) -> DomainConfig:
    if isinstance(value, DomainConfig):
        return value

    if isinstance(value, str):
        domain = normalize_domain(value)
        if not domain:
            raise ConfigError("Domain string cannot be empty")
        return DomainConfig(domain=domain)

    if isinstance(value, Mapping):
        domain = normalize_domain(str(value.get("domain", "")))
        if not domain:
            raise ConfigError(f"Domain config missing valid 'domain': {value!r}")
        quota = _as_int(value.get("quota", DEFAULT_DOMAIN_QUOTA), "quota")
        return DomainConfig(domain=domain, quota=DEFAULT_DOMAIN_QUOTA if quota is None else quota)

    raise ConfigError(f"Unsupported domain config value: {type(value)!r}")


def _coerce_domain_list(values: list[Any]) -> list[DomainConfig]:
    dedup: dict[str, DomainConfig] = {}
    for item in values:
        domain_cfg = _coerce_domain_config(item)
        dedup[domain_cfg.domain] = domain_cfg
    return list(dedup.values())


@dataclass(slots=True)
class CrawlConfig:
    """Top-level crawler configuration used by pipeline/frontier/fetcher."""

    seeds: list[SeedConfig]
    domains: list[DomainConfig] = field(default_factory=list)

    max_depth: int = DEFAULT_MAX_DEPTH
    max_urls: int = DEFAULT_MAX_URLS
    max_duration_seconds: float | None = DEFAULT_MAX_DURATION_SECONDS
    concurrency: int = DEFAULT_CONCURRENCY

    max_retries: int = DEFAULT_MAX_RETRIES
    retry_backoff_base_seconds: float = DEFAULT_RETRY_BACKOFF_BASE_SECONDS
    retry_backoff_multiplier: float = DEFAULT_RETRY_BACKOFF_MULTIPLIER
    retry_jitter_seconds: float = DEFAULT_RETRY_JITTER_SECONDS
    timeout_range_seconds: tuple[float, float] = DEFAULT_TIMEOUT_RANGE_SECONDS

    quality_thresholds: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_QUALITY_THRESHOLDS)
    )
    default_quality_threshold: float = DEFAULT_QUALITY_THRESHOLD

    allowed_file_types: tuple[str, ...] = DEFAULT_ALLOWED_FILE_TYPES
    data_rich_paths: tuple[str, ...] = DEFAULT_DATA_RICH_PATHS
    ignored_query_params: tuple[str, ...] = DEFAULT_IGNORED_QUERY_PARAMS

    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL
    recrawl_enabled: bool = DEFAULT_RECRAWL_ENABLED
    cross_session_dedup: bool = DEFAULT_CROSS_SESSION_DEDUP

    stealth: StealthConfig = field(default_factory=StealthConfig)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    _domain_index: dict[str, DomainConfig] = field(init=False, repr=False)
    _scope: DomainScope = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.seeds = [_coerce_seed(seed) for seed in self.seeds]
        self.seeds = [seed for seed in self.seeds if seed.url]
        if not self.seeds:
            raise ConfigError("CrawlConfig requires at least one seed URL")
        for seed in self.seeds:
            if normalize_url(seed.url) is None:
                raise ConfigError(f"Seed is not a valid http(s) URL: {seed.url!r}")
            if not MIN_PRIORITY <= seed.priority <= MAX_PRIORITY:
                raise ConfigError(
                    f"Seed priority must be within [{MIN_PRIORITY}, {MAX_PRIORITY}]: {seed.url}"
                )

        if self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.max_urls <= 0:
            raise ConfigError("max_urls must be > 0")
        if self.max_duration_seconds is not None and self.max_duration_seconds <= 0:
            raise ConfigError("max_duration_seconds must be > 0 when set")
        if self.concurrency <= 0:
            raise ConfigError("concurrency must be > 0")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be >= 0")
        if self.retry_backoff_base_seconds < 0 or self.retry_jitter_seconds < 0:
            raise ConfigError("retry backoff settings must be >= 0")
        if self.retry_backoff_multiplier < 1:
            raise ConfigError("retry_backoff_multiplier must be >= 1")
        self.timeout_range_seconds = _as_range(self.timeout_range_seconds, "timeout_range_seconds")
        if self.timeout_range_seconds[0] <= 0:
            raise ConfigError("timeout_range_seconds must be positive")
        if self.checkpoint_interval <= 0:
            raise ConfigError("checkpoint_interval must be > 0")

        self.quality_thresholds = {
            str(key).strip().lower(): float(value)
            for key, value in self.quality_thresholds.items()
        }
        for key, value in [*self.quality_thresholds.items(), ("default", self.default_quality_threshold)]:
            if not 0.0 <= value <= 100.0:
                raise ConfigError(f"Quality threshold for '{key}' must be within [0, 100]")

        self.allowed_file_types = tuple(
            ext.lower() if ext.startswith(".") else "." + ext.lower()
            for ext in self.allowed_file_types
        )
        self.data_rich_paths = tuple(self.data_rich_paths)
        self.ignored_query_params = tuple(
            str(key).strip().lower() for key in self.ignored_query_params if str(key).strip()
        )

        if not self.domains:
            self.domains = [DomainConfig(domain=normalize_domain(seed.url)) for seed in self.seeds]

        self.domains = _coerce_domain_list(list(self.domains))
        if not self.domains:
            raise ConfigError("No valid domains configured")
        for domain_cfg in self.domains:
            if domain_cfg.quota <= 0:
                raise ConfigError(f"Quota for {domain_cfg.domain} must be > 0")

        self._domain_index = {domain.domain: domain for domain in self.domains}
        self._scope = DomainScope(self._domain_index)

        for seed in self.seeds:
            if self.get_domain_config(seed.url) is None:
                raise ConfigError(f"Seed {seed.url} is outside the domain allow-list")

    @property
    def allowed_domains(self) -> list[str]:
        """Return normalized allowed domains."""

        return [domain.domain for domain in self.domains]

    @property
    def scope(self) -> DomainScope:
        return self._scope

    def canonical_url(self, url: str | None) -> str | None:
        return normalize_url(url, ignored_params=self.ignored_query_params)

    def get_domain_config(self, domain_or_url: str) -> DomainConfig | None:
        """Match a URL/host to the most specific configured domain (longest suffix wins)."""

        matched = self._scope.match(domain_or_url)
        if matched is None:
            return None
        return self._domain_index[matched]

    def is_url_allowed(self, url: str) -> bool:
        return self.get_domain_config(url) is not None

    def quota_for(self, url: str) -> int | None:
        domain_cfg = self.get_domain_config(url)
        return None if domain_cfg is None else domain_cfg.quota

    def quality_threshold_for(self, category: str | None) -> float:
        if not category:
            return self.default_quality_threshold
        return self.quality_thresholds.get(category.lower(), self.default_quality_threshold)

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "seeds": [seed.to_json() for seed in self.seeds],
            "domains": [domain.to_json() for domain in self.domains],
            "max_depth": self.max_depth,
            "max_urls": self.max_urls,
            "max_duration_seconds": self.max_duration_seconds,
            "concurrency": self.concurrency,
            "max_retries": self.max_retries,
            "retry_backoff_base_seconds": self.retry_backoff_base_seconds,
            "retry_backoff_multiplier": self.retry_backoff_multiplier,
            "retry_jitter_seconds": self.retry_jitter_seconds,
            "timeout_range_seconds": list(self.timeout_range_seconds),
            "quality_thresholds": dict(self.quality_thresholds),
            "default_quality_threshold": self.default_quality_threshold,
            "allowed_file_types": list(self.allowed_file_types),
            "data_rich_paths": list(self.data_rich_paths),
            "ignored_query_params": list(self.ignored_query_params),
            "checkpoint_interval": self.checkpoint_interval,
            "recrawl_enabled": self.recrawl_enabled,
            "cross_session_dedup": self.cross_session_dedup,
            "stealth": self.stealth.to_json(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        if "seeds" not in payload:
            raise ConfigError("Config missing required key: 'seeds'")

        seeds = payload.get("seeds") or []
        if not isinstance(seeds, list):
            raise ConfigError("'seeds' must be a list")

        raw_domains = list(payload.get("domains") or [])
        thresholds = dict(DEFAULT_QUALITY_THRESHOLDS)
        thresholds.update(dict(payload.get("quality_thresholds") or {}))

        max_duration = _as_float(payload.get("max_duration_seconds"), "max_duration_seconds")

        return cls(
            seeds=[_coerce_seed(seed) for seed in seeds],
            domains=_coerce_domain_list(raw_domains),
            max_depth=int(payload.get("max_depth", DEFAULT_MAX_DEPTH)),
            max_urls=int(payload.get("max_urls", DEFAULT_MAX_URLS)),
            max_duration_seconds=max_duration,
            concurrency=int(payload.get("concurrency", DEFAULT_CONCURRENCY)),
            max_retries=int(payload.get("max_retries", DEFAULT_MAX_RETRIES)),
            retry_backoff_base_seconds=float(
                payload.get("retry_backoff_base_seconds", DEFAULT_RETRY_BACKOFF_BASE_SECONDS)
            ),
            retry_backoff_multiplier=float(
                payload.get("retry_backoff_multiplier", DEFAULT_RETRY_BACKOFF_MULTIPLIER)
            ),
            retry_jitter_seconds=float(
                payload.get("retry_jitter_seconds", DEFAULT_RETRY_JITTER_SECONDS)
            ),
            timeout_range_seconds=_as_range(
                payload.get("timeout_range_seconds", DEFAULT_TIMEOUT_RANGE_SECONDS),
                "timeout_range_seconds",
            ),
            quality_thresholds={str(k): float(v) for k, v in thresholds.items()},
            default_quality_threshold=float(
                payload.get("default_quality_threshold", DEFAULT_QUALITY_THRESHOLD)
            ),
            allowed_file_types=tuple(
                str(item) for item in payload.get("allowed_file_types", DEFAULT_ALLOWED_FILE_TYPES)
            ),
            data_rich_paths=tuple(
                str(item) for item in payload.get("data_rich_paths", DEFAULT_DATA_RICH_PATHS)
            ),
            ignored_query_params=tuple(
                str(item) for item in payload.get("ignored_query_params", DEFAULT_IGNORED_QUERY_PARAMS)
            ),
            checkpoint_interval=int(
                payload.get("checkpoint_interval", DEFAULT_CHECKPOINT_INTERVAL)
            ),
            recrawl_enabled=_as_bool(
                payload.get("recrawl_enabled", DEFAULT_RECRAWL_ENABLED),
                "recrawl_enabled",
            ),
            cross_session_dedup=_as_bool(
                payload.get("cross_session_dedup", DEFAULT_CROSS_SESSION_DEDUP),
                "cross_session_dedup",
            ),
            stealth=StealthConfig.from_dict(dict(payload.get("stealth") or {})),
            metadata=dict(payload.get("metadata", {})),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ConfigError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ConfigError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ConfigError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "ConfigError",
    "CrawlConfig",
    "DomainConfig",
    "SeedConfig",
    "StealthConfig",
    "load_config",
    "save_config",
]
