"""Configuration for treefind: environment settings and the immutable search config."""

import os
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError
from .ignore import DEFAULT_PROJECT_MARKERS, IgnorePattern, discover_project_root, load_patterns
from .models import EntryType, OutputFormat

# Absorbs filesystem timestamp truncation on "since" comparisons
SINCE_TOLERANCE = timedelta(seconds=2)

_SIZE_UNITS = {"": 1, "K": 1 << 10, "M": 1 << 20, "G": 1 << 30, "T": 1 << 40}
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMGT]?)B?$", re.IGNORECASE)

_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}
_DURATION_RE = re.compile(r"^(\d+)\s*([smhdw])$")

_TIME_FORMATS = ("%Y-%m-%d", "%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S")


def _default_global_ignore_file() -> Path:
    return Path(user_config_dir("treefind", "treefind")) / "ignore"


class GlobalSettings(BaseSettings):
    """User-level defaults for treefind, read from ``TREEFIND_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="TREEFIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables
    )

    concurrency: int = Field(default=0, description="Directory workers (0 = host parallelism)")
    output: str = Field(default=OutputFormat.TEXT.value, description="Default output format")
    respect_gitignore: bool = Field(default=True, description="Read the project's ignore file")
    ignore_filename: str = Field(default=".gitignore", description="Project ignore file name")
    project_markers: List[str] = Field(default=list(DEFAULT_PROJECT_MARKERS))
    default_ignore_patterns: List[str] = Field(default_factory=list)
    global_ignore_file: Optional[Path] = Field(default_factory=_default_global_ignore_file)


class SearchConfig(BaseModel):
    """Everything one search needs. Validated on construction, never mutated."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: str
    extensions: FrozenSet[str] = frozenset()
    entry_type: EntryType = EntryType.ALL
    name: str = ""
    name_regex: Optional[re.Pattern] = None

    # Absolute bounds are inclusive, relative ones strict
    min_size: Optional[int] = Field(default=None, ge=0)
    max_size: Optional[int] = Field(default=None, ge=0)
    larger: Optional[int] = Field(default=None, ge=0)
    smaller: Optional[int] = Field(default=None, ge=0)

    after: Optional[datetime] = None
    before: Optional[datetime] = None
    since: Optional[datetime] = None

    include_hidden: bool = False
    max_depth: int = Field(default=-1, ge=-1)
    concurrency: int = Field(default=0, validate_default=True)
    output_format: OutputFormat = OutputFormat.TEXT
    pretty: bool = False
    follow_symlinks: bool = False
    ignore_patterns: Tuple[str, ...] = ()
    ignore_root: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_ignore_root(cls, data):
        """Evaluate ignore patterns from the enclosing project root unless one is given."""
        if not isinstance(data, dict) or data.get("ignore_root") or not data.get("ignore_patterns"):
            return data
        root = data.get("root")
        if not isinstance(root, str) or not root.strip():
            return data
        return {**data, "ignore_root": discover_project_root(root.strip())}

    @field_validator("root")
    @classmethod
    def validate_root(cls, v: str) -> str:
        """Require a root and make it absolute."""
        v = v.strip()
        if not v:
            raise ValueError("root directory is required")
        return os.path.abspath(v)

    @field_validator("extensions", mode="before")
    @classmethod
    def validate_extensions(cls, v):
        """Normalize extensions to lowercase with a leading dot."""
        if isinstance(v, str):
            v = [v]
        return frozenset(parse_extensions(v))

    @field_validator("name_regex", mode="before")
    @classmethod
    def validate_name_regex(cls, v):
        """Compile string patterns, treating an empty string as no regex."""
        if v is None or isinstance(v, re.Pattern):
            return v
        if not v:
            return None
        try:
            return re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regex {v!r}: {e}")

    @field_validator("after", "before", "since")
    @classmethod
    def validate_timestamps(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive datetimes are taken as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Resolve a non-positive worker count to the host's parallelism."""
        if v <= 0:
            return os.cpu_count() or 1
        return v

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def validate_ignore_patterns(cls, v):
        """Reject malformed globs now instead of at walk time."""
        if isinstance(v, str):
            v = [v]
        patterns = tuple(v)
        for raw in patterns:
            IgnorePattern.parse(raw)
        return patterns

    @property
    def matcher_root(self) -> str:
        """Directory ignore patterns are evaluated relative to."""
        return self.ignore_root or self.root


def parse_extensions(values: Iterable[str]) -> List[str]:
    """Normalize ``["go", ".MD", "py,txt"]`` to ``[".go", ".md", ".py", ".txt"]``."""
    extensions = []
    for value in values:
        for ext in value.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = "." + ext
            extensions.append(ext)
    return extensions


def parse_size(spec: str) -> int:
    """Parse a human size such as ``512``, ``10K``, ``20MB`` or ``1.5G`` into bytes."""
    m = _SIZE_RE.match(spec.strip())
    if not m:
        raise ConfigError(f"invalid size {spec!r}: expected a number with optional K, M, G or T suffix")
    number, unit = m.groups()
    return int(float(number) * _SIZE_UNITS[unit.upper()])


def parse_time(spec: str) -> datetime:
    """Parse ``YYYY-MM-DD``, ``YYYY-MM-DD HH:MM`` or RFC 3339. Naive values are UTC."""
    text = spec.strip()
    parsed = None
    for fmt in _TIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
            break
        except ValueError:
            continue

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise ConfigError(f"invalid time {spec!r}: use YYYY-MM-DD, YYYY-MM-DD HH:MM or RFC 3339")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_since(spec: str, now: Optional[datetime] = None) -> datetime:
    """Resolve ``7d``, ``3h``, ``30m``, ``45s``, ``2w`` or a date into a lower bound.

    The result is widened by ``SINCE_TOLERANCE``.
    """
    text = spec.strip()
    m = _DURATION_RE.match(text)
    if m:
        amount, unit = m.groups()
        now = now or datetime.now(timezone.utc)
        bound = now - timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    else:
        try:
            bound = parse_time(text)
        except ConfigError:
            raise ConfigError(f"invalid --since {spec!r}: use a duration like 7d or 3h, or a date")
    return bound - SINCE_TOLERANCE


def parse_output_format(value: str) -> OutputFormat:
    """Map a user-facing format name onto ``OutputFormat``."""
    value = value.strip().lower()
    if value == "text":
        return OutputFormat.TEXT
    try:
        return OutputFormat(value)
    except ValueError:
        choices = ", ".join(f.value for f in OutputFormat)
        raise ConfigError(f"unsupported output format {value!r} (choose from {choices})")


def parse_entry_type(value: str) -> EntryType:
    """Map ``f``/``d``/``a`` (or ``file``/``dir``/``all``) onto ``EntryType``."""
    key = value.strip().lower()[:1]
    try:
        return EntryType(key)
    except ValueError:
        raise ConfigError(f"unsupported entry type {value!r} (choose from f, d, a)")


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        msg = item.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def build_config(
    root: str = ".",
    *,
    extensions: Iterable[str] = (),
    name: str = "",
    regex: str = "",
    entry_type: str = "a",
    include_hidden: bool = False,
    larger: Optional[str] = None,
    smaller: Optional[str] = None,
    min_size: Optional[str] = None,
    max_size: Optional[str] = None,
    since: Optional[str] = None,
    after: Optional[str] = None,
    before: Optional[str] = None,
    max_depth: int = -1,
    concurrency: Optional[int] = None,
    output: Optional[str] = None,
    pretty: bool = False,
    follow_symlinks: bool = False,
    respect_gitignore: Optional[bool] = None,
    ignore: Iterable[str] = (),
    settings: Optional[GlobalSettings] = None,
) -> SearchConfig:
    """Turn user-level strings into a validated ``SearchConfig``.

    Loads ignore patterns for the discovered project root. Every problem is
    reported as ``ConfigError`` before any traversal happens.
    """
    settings = settings or GlobalSettings()
    if not root or not root.strip():
        raise ConfigError("root directory is required")

    if respect_gitignore is None:
        respect_gitignore = settings.respect_gitignore

    ignore_root, patterns = load_patterns(
        root,
        extra=[*settings.default_ignore_patterns, *ignore],
        respect_gitignore=respect_gitignore,
        ignore_filename=settings.ignore_filename,
        markers=settings.project_markers,
        global_ignore_file=settings.global_ignore_file,
    )

    try:
        return SearchConfig(
            root=root,
            extensions=parse_extensions(extensions),
            entry_type=parse_entry_type(entry_type),
            name=name,
            name_regex=regex or None,
            larger=parse_size(larger) if larger else None,
            smaller=parse_size(smaller) if smaller else None,
            min_size=parse_size(min_size) if min_size else None,
            max_size=parse_size(max_size) if max_size else None,
            since=parse_since(since) if since else None,
            after=parse_time(after) if after else None,
            before=parse_time(before) if before else None,
            include_hidden=include_hidden,
            max_depth=max_depth,
            concurrency=settings.concurrency if concurrency is None else concurrency,
            output_format=parse_output_format(output or settings.output),
            pretty=pretty,
            follow_symlinks=follow_symlinks,
            ignore_patterns=patterns,
            ignore_root=ignore_root,
        )
    except ValidationError as e:
        raise ConfigError(_describe(e)) from e
