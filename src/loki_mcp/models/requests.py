"""Argument schemas for the Loki MCP tools."""

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat

NANOSECONDS_PER_SECOND = 1_000_000_000


class LokiBaseRequest(BaseModel):
    """Arguments shared by every Loki tool."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str | None = Field(default=None, description="Loki server URL")
    username: str | None = Field(default=None, description="Username for basic authentication")
    password: str | None = Field(default=None, description="Password for basic authentication")
    token: str | None = Field(default=None, description="Bearer token for authentication")
    start: str | None = Field(default=None, description="Start time for the query")
    end: str | None = Field(default=None, description="End time for the query")
    org: str | None = Field(default=None, description="Organization ID for the query")
    format: str | None = Field(default=None, description="Output format: raw, json, or text")


class LokiQueryRequest(LokiBaseRequest):
    """Arguments for loki_query."""

    query: str = Field(..., description="LogQL query string")
    limit: FiniteFloat | None = Field(default=None, description="Maximum number of entries to return")


class LokiLabelNamesRequest(LokiBaseRequest):
    """Arguments for loki_label_names."""


class LokiLabelValuesRequest(LokiBaseRequest):
    """Arguments for loki_label_values."""

    label: str = Field(..., description="Label name to get values for")


class ResolvedConfig(BaseModel):
    """Connection settings after argument/environment/default precedence."""

    model_config = ConfigDict(frozen=True)

    url: str
    username: str = ""
    password: str = ""
    token: str = ""
    org_id: str = ""
    format: str = "raw"


class TimeRange(BaseModel):
    """
    Absolute query window in Unix seconds.

    start <= end is not enforced; an inverted range goes to Loki as is.
    """

    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @property
    def start_ns(self) -> int:
        return self.start * NANOSECONDS_PER_SECOND

    @property
    def end_ns(self) -> int:
        return self.end * NANOSECONDS_PER_SECOND
