"""Configuration management for graph-index-sync."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, TomlConfigSettingsSource


def _find_config_toml() -> Path | None:
    """Walk up from cwd looking for ``graphsync.toml``."""
    current = Path.cwd().resolve()
    while True:
        candidate = current / "graphsync.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


class ElasticsearchSettings(BaseModel):
    """Elasticsearch connection and index-mapping settings."""

    host_name: str = Field(default="http://localhost:9200", description="Seed Elasticsearch HTTP address.")
    index_spec: str = Field(
        default="",
        description="Label to index mapping, e.g. 'people:Person(name,email),orgs:Company(name)'.",
    )
    discovery: bool = Field(default=False, description="Discover cluster nodes via /_nodes/http and round-robin.")
    include_id_field: bool = Field(default=True, description="Add the node id as an 'id' field to documents.")
    include_labels_field: bool = Field(default=True, description="Add the node labels as a 'labels' field.")
    enable_auto_index: bool = Field(
        default=True, description="Index committed transactions automatically (off = explicit commands only)."
    )
    use_async: bool = Field(default=True, description="Submit post-commit bulk requests without blocking.")
    timeout_s: float = Field(default=10.0, description="HTTP timeout in seconds for bulk requests.")
    max_workers: int = Field(default=4, description="Size of the async bulk submission worker pool.")
    mapping_types: bool = Field(default=False, description="Send '_type' in bulk metadata (pre-7.x clusters).")


class GraphSettings(BaseModel):
    """Bolt connection settings for the graph store (Neo4j or Memgraph)."""

    host: str = Field(default="localhost", description="Graph store host.")
    port: int = Field(default=7687, description="Graph store Bolt port.")
    username: str = Field(default="", description="Graph store username.")
    password: str = Field(default="", description="Graph store password.")
    query_timeout_s: float = Field(default=10.0, description="Timeout in seconds for read queries.")
    page_size: int = Field(default=500, description="Nodes per page when re-indexing a label.")


class ObservabilitySettings(BaseModel):
    """OpenTelemetry observability settings (requires ``[otel]`` extra)."""

    enabled: bool = Field(default=False, description="Enable OpenTelemetry tracing and metrics.")
    exporter: str = Field(default="otlp", description="Exporter type: 'otlp', 'console', or 'none'.")
    endpoint: str = Field(default="http://localhost:4317", description="OTLP collector endpoint.")
    service_name: str = Field(default="graph-index-sync", description="OTel service.name resource attribute.")
    sample_rate: float = Field(default=1.0, description="Trace sample rate (1.0 = all, 0.1 = 10%).")


class SyncSettings(BaseSettings):
    """Root configuration for graph-index-sync.

    Precedence: init kwargs, then ``GRAPHSYNC_<GROUP>__<FIELD>`` env vars, then
    ``graphsync.toml``.  The groups are plain models so only the root reads the
    environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRAPHSYNC_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_path = _find_config_toml()
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings]
        if toml_path:
            sources.append(TomlConfigSettingsSource(settings_cls, toml_file=toml_path))
        sources.append(file_secret_settings)
        return tuple(sources)

    elasticsearch: ElasticsearchSettings = Field(default_factory=ElasticsearchSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
