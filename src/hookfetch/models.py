"""Canonical Pydantic models and enums shared across all hookfetch modules.

The models fall into two groups:

**Request models** -- built per call and threaded through the hook chain:
    :class:`RequestConfig`, :class:`ClientOptions`, :class:`SSEOptions`,
    plus the enums :class:`HTTPMethod`, :class:`ContentType`,
    :class:`StatusCode`, :class:`ArrayFormat`, :class:`ResponseType` and
    :class:`AttemptState`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`OutputConfig`, :class:`CacheConfig`, :class:`PluginsConfig`,
    :class:`GlobalConfig`, and :class:`Profile`.

All models use Pydantic v2. Models that accept plugin-defined extensions use
``extra="allow"`` so that unknown keys are preserved in ``model_extra``.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Enums ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods a request can be dispatched with."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class ContentType(str, enum.Enum):
    """Content types the body encoder and decoders know about."""

    JSON = "application/json"
    FORM_URLENCODED = "application/x-www-form-urlencoded"
    FORM_DATA = "multipart/form-data"
    TEXT = "text/plain"
    HTML = "text/html"
    EVENT_STREAM = "text/event-stream"
    OCTET_STREAM = "application/octet-stream"


class StatusCode(enum.IntEnum):
    """Synthetic status codes assigned to failures that have no HTTP status."""

    DEDUPE = 400
    TIME_OUT = 408
    ABORTED = 499
    BODY_NULL = 502
    NETWORK_ERROR = 599
    UNKNOWN = 601


class ArrayFormat(str, enum.Enum):
    """How list values in ``params`` are serialised into the query string.

    ``REPEAT`` gives ``a=1&a=2``, ``BRACKETS`` gives ``a[]=1&a[]=2``,
    ``INDICES`` gives ``a[0]=1&a[1]=2`` and ``COMMA`` gives ``a=1,2``.
    """

    REPEAT = "repeat"
    BRACKETS = "brackets"
    INDICES = "indices"
    COMMA = "comma"


class ResponseType(str, enum.Enum):
    """Which decode accessor produced a result."""

    RESPONSE = "response"
    JSON = "json"
    TEXT = "text"
    BYTES = "bytes"
    ARRAY_BUFFER = "array_buffer"
    BLOB = "blob"
    FORM_DATA = "form_data"


class AttemptState(str, enum.Enum):
    """Lifecycle state of one request attempt."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    RESOLVING = "resolving"
    STREAMING = "streaming"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    ABORTED = "aborted"

    @property
    def settled(self) -> bool:
        return self in (AttemptState.RESOLVED, AttemptState.REJECTED, AttemptState.ABORTED)


# --- Request models ---


class RequestConfig(BaseModel):
    """Everything needed to dispatch one request.

    Built by :class:`~hookfetch.client.instance.HookFetch` from its defaults
    and the call arguments, then handed to ``before_request`` handlers which
    may mutate it or return a replacement. Once dispatch begins the config is
    treated as frozen.

    ``resolve`` is not serialised. A ``before_request`` handler sets it to a
    zero-argument callable (sync or async) to short-circuit dispatch: the
    transport is skipped and the callable's return value becomes the
    response.

    ``extra`` is an opaque bag for cross-plugin flags such as ``sse_able``,
    ``dedupe_able``, ``cache_able`` and ``cache_ttl``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str = ""
    base_url: str = ""
    method: HTTPMethod = HTTPMethod.GET
    params: dict[str, Any] = Field(default_factory=dict)
    data: Any = None
    files: Optional[dict[str, Any]] = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: Optional[float] = Field(
        default=None, description="Attempt timeout in seconds; None waits forever"
    )
    with_credentials: bool = Field(
        default=True, description="Send cookies with the request"
    )
    extra: dict[str, Any] = Field(default_factory=dict)
    array_format: ArrayFormat = ArrayFormat.REPEAT
    max_attempts: int = Field(
        default=3, ge=1, description="Total attempts allowed, including the first"
    )
    resolve: Optional[Callable[[], Any]] = Field(default=None, exclude=True)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    def copy_with(self, **overrides: Any) -> RequestConfig:
        """Return a validated copy whose dict fields are independent of this one.

        Args:
            **overrides: Field values replacing those of this config.
        """
        values: dict[str, Any] = dict(self)
        values.update(
            params=dict(self.params),
            headers=dict(self.headers),
            extra=dict(self.extra),
        )
        if self.files is not None:
            values["files"] = dict(self.files)
        values.update(overrides)
        return type(self).model_validate(values)


class ClientOptions(BaseModel):
    """Instance-wide defaults merged into every :class:`RequestConfig`."""

    base_url: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[float] = None
    with_credentials: bool = True
    array_format: ArrayFormat = ArrayFormat.REPEAT
    max_attempts: int = Field(default=3, ge=1)
    extra: dict[str, Any] = Field(default_factory=dict)


class SSEOptions(BaseModel):
    """Settings of the stream segmenter and per-line decoder.

    Example::

        SSEOptions(parse_json=True, prefix="data:", done="[DONE]")
    """

    separator: str = Field(default="\n\n", min_length=1)
    line_separator: Optional[str] = None
    trim: bool = True
    parse_json: bool = False
    prefix: str = ""
    done: Optional[str] = Field(
        default=None, description="Sentinel that ends the stream when seen"
    )
    encoding: str = "utf-8"


# --- Configuration models ---


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")
    directory: Optional[str] = Field(
        default=None, description="Cache directory; defaults to the XDG cache dir"
    )


class PluginsConfig(BaseModel):
    """Explicit plugin allow/deny lists stored in :class:`GlobalConfig`."""

    enabled: list[str] = Field(default_factory=list)
    disabled: list[str] = Field(default_factory=list)


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/hookfetch/config.json``.

    Loaded and saved by :func:`~hookfetch.config.load_global_config` and
    :func:`~hookfetch.config.save_global_config`. See
    :func:`~hookfetch.config.resolve_config` for the precedence chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)


class Profile(ClientOptions):
    """Named set of :class:`ClientOptions` stored under ``profiles/``.

    A profile pins the base URL, default headers and timeouts for one API so
    that ``hookfetch request -p NAME /path`` needs only the path. Extra
    fields are preserved in ``model_extra`` for plugins.
    """

    model_config = ConfigDict(extra="allow")

    name: str
