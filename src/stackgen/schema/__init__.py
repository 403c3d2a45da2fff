"""Schema acquisition: live ``listApis`` / ``listCapabilities`` or local snapshots."""

from stackgen.schema.fetcher import LocalSource, RemoteSource, SchemaFetcher, SchemaSource
from stackgen.schema.loader import load_snapshot

__all__ = ["LocalSource", "RemoteSource", "SchemaFetcher", "SchemaSource", "load_snapshot"]
