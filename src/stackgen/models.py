"""Canonical Pydantic models shared across all stackgen modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- loaded from the config file and CLI flags:
    :class:`Endpoint`, :class:`EnvironmentConfig`, and :class:`GeneratorConfig`.

**Raw schema models** -- the loosely-typed ``listApis`` / ``listCapabilities``
payloads, with every optional key spelled out as an explicit ``Optional``:
    :class:`RawField`, :class:`RawParameter`, :class:`RawCommandSchema`, and
    :class:`RawCapabilities`.

**Pipeline models** -- produced by the builder and consumed by the emission
engine; immutable once constructed:
    :class:`SignedQuery`, :class:`ParameterDescriptor`, :class:`TypeNode`,
    :class:`CommandDescriptor`, :class:`GeneratedArtifact`, and
    :class:`GenerationResult`.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCHEME = "http"
DEFAULT_API_PATH = "client/api"


# --- Configuration ---


class Endpoint(BaseModel):
    """A management API endpoint decomposed into its URL parts.

    Example::

        >>> Endpoint.from_url("https://cloud.example.com:8443/client/api").base_url
        'https://cloud.example.com:8443/client/api'
    """

    model_config = ConfigDict(frozen=True)

    scheme: str = DEFAULT_SCHEME
    host: str
    port: Optional[int] = None
    path: str = DEFAULT_API_PATH

    @classmethod
    def from_url(cls, url: str) -> Endpoint:
        """Split *url* into scheme, host, port, and path prefix.

        A URL without a scheme is treated as ``http``. A URL without a path
        uses the default ``client/api`` prefix.
        """
        from urllib.parse import urlsplit

        text = url.strip()
        if "://" not in text:
            text = f"{DEFAULT_SCHEME}://{text}"
        parts = urlsplit(text)
        path = parts.path.strip("/") or DEFAULT_API_PATH
        return cls(
            scheme=parts.scheme or DEFAULT_SCHEME,
            host=parts.hostname or "",
            port=parts.port,
            path=path,
        )

    @property
    def base_url(self) -> str:
        """``scheme://host[:port]/path`` without a query string."""
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}/{self.path}"


class EnvironmentConfig(BaseModel):
    """One named generation target from the config file.

    ``key`` and ``secret`` accept either a literal value or a credential
    source (``env:VAR`` or ``file:/path``), resolved by
    :func:`~stackgen.config.resolve_credential`.
    """

    endpoint: Optional[str] = Field(
        default=None, description="Management API URL, e.g. http://host:8080/client/api"
    )
    key: Optional[str] = Field(default=None, description="API key or credential source")
    secret: Optional[str] = Field(
        default=None, description="Secret key or credential source"
    )
    out: Optional[str] = Field(default=None, description="Output directory (must exist)")
    namespace: str = Field(default="", description="Package name of the generated client")
    timeout: float = Field(
        default=60.0, description="HTTP timeout in seconds; 0 disables the timeout"
    )
    verify_ssl: bool = True
    local_commands_json: Optional[str] = Field(
        default=None, description="listApis snapshot (file path or inline JSON)"
    )
    local_capabilities_json: Optional[str] = Field(
        default=None, description="listCapabilities snapshot (file path or inline JSON)"
    )
    strict: bool = Field(
        default=False, description="Fail when one type name describes two shapes"
    )

    @property
    def is_local(self) -> bool:
        """Whether the schema comes from local snapshots rather than the live API."""
        return bool(self.local_commands_json or self.local_capabilities_json)


class GeneratorConfig(BaseModel):
    """Top-level config file: a set of named environments."""

    default_environment: Optional[str] = None
    environments: dict[str, EnvironmentConfig] = Field(default_factory=dict)


# --- Raw schema ---


class RawField(BaseModel):
    """One response field as described by ``listApis``."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    response: Optional[list[RawField]] = None


class RawParameter(BaseModel):
    """One request parameter as described by ``listApis``."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    required: bool = False
    length: Optional[int] = None
    since: Optional[str] = None
    related: Optional[str] = None


class RawCommandSchema(BaseModel):
    """One command entry of the ``listApis`` response."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str = ""
    isasync: bool = False
    since: Optional[str] = None
    related: Optional[str] = None
    params: list[RawParameter] = Field(default_factory=list)
    response: list[RawField] = Field(default_factory=list)


class RawCapabilities(BaseModel):
    """The ``capability`` object of the ``listCapabilities`` response.

    Only the version is interpreted; every other key is kept in
    ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    cloudstackversion: str = "unknown"


# --- Pipeline ---


class SignedQuery(BaseModel):
    """A canonical, signed query ready to send.

    ``query`` is the form-encoded POST body (canonical query followed by the
    trailing ``signature=`` parameter); ``url`` is the same query appended to
    the endpoint for transports that need a full URL.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    canonical: str
    signature: str
    query: str
    base_url: str

    @property
    def url(self) -> str:
        return f"{self.base_url}?{self.query}"


class ParameterDescriptor(BaseModel):
    """A single request parameter of a :class:`CommandDescriptor`."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    required: bool = False
    type: str = "string"
    length: Optional[int] = None
    since: Optional[str] = None
    related: list[str] = Field(default_factory=list)


class TypeNode(BaseModel):
    """A named field inside a response or nested response.

    ``ref`` names the :class:`~stackgen.model.registry.TypeRegistry` entry
    describing nested elements. It is the field's own name, so two fields
    with the same name share one entry.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    category: str
    description: str = ""
    ref: Optional[str] = None
    item_category: Optional[str] = None

    @property
    def is_array(self) -> bool:
        return self.category == "array"


class CommandDescriptor(BaseModel):
    """One remote command, ready for emission.

    ``params`` is keyed by lower-cased parameter name and sorted by key; the
    order drives generated signatures, so it must never depend on the
    order the API listed them in.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    is_async: bool = False
    since: Optional[str] = None
    related: list[str] = Field(default_factory=list)
    params: dict[str, ParameterDescriptor] = Field(default_factory=dict)
    response_type_name: str
    required_count: int = 0
    optional_count: int = 0
    response: TypeNode

    @property
    def required_params(self) -> list[ParameterDescriptor]:
        return [p for p in self.params.values() if p.required]

    @property
    def optional_params(self) -> list[ParameterDescriptor]:
        return [p for p in self.params.values() if not p.required]


class GeneratedArtifact(BaseModel):
    """A rendered file: POSIX path relative to the output directory plus content."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: str


def dump_model(model: BaseModel) -> dict[str, Any]:
    """Serialise *model* to a JSON-compatible dict (used by inspection commands)."""
    return model.model_dump(mode="json")


class GenerationResult(BaseModel):
    """Everything one generation run rendered, grouped by kind."""

    model_config = ConfigDict(frozen=True)

    cloudstack_version: str
    command_artifacts: list[GeneratedArtifact] = Field(default_factory=list)
    model_artifacts: list[GeneratedArtifact] = Field(default_factory=list)
    support_artifacts: list[GeneratedArtifact] = Field(default_factory=list)

    @property
    def artifacts(self) -> list[GeneratedArtifact]:
        return [*self.command_artifacts, *self.model_artifacts, *self.support_artifacts]
