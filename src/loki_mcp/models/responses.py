"""Typed views of Loki API responses."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator


class LokiResponse(BaseModel):
    """
    Base for decoded Loki envelopes.

    Keeps the payload exactly as decoded so raw/json output can reproduce
    it without re-serializing model defaults.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: str
    _payload: dict[str, Any] = PrivateAttr(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]):
        """Validate a decoded JSON body and remember the original."""
        response = cls.model_validate(payload)
        response._payload = payload
        return response

    @property
    def payload(self) -> dict[str, Any]:
        return self._payload


# query_range responses

class LokiStream(BaseModel):
    """Labels plus [timestamp_ns, line] pairs for one log stream."""

    stream: dict[str, str] = Field(default_factory=dict)
    values: list[tuple[str, str]] = Field(default_factory=list)


class MatrixSeries(BaseModel):
    """Samples of a metric query over time."""

    metric: dict[str, str] = Field(default_factory=dict)
    values: list[tuple[float, str]] = Field(default_factory=list)


class VectorSample(BaseModel):
    """Single sample of an instant metric query."""

    metric: dict[str, str] = Field(default_factory=dict)
    value: tuple[float, str]


class StreamsData(BaseModel):
    """Log query result."""

    model_config = ConfigDict(populate_by_name=True)

    result_type: Literal["streams"] = Field(alias="resultType")
    result: list[LokiStream] = Field(default_factory=list)


class MatrixData(BaseModel):
    """Range metric query result."""

    model_config = ConfigDict(populate_by_name=True)

    result_type: Literal["matrix"] = Field(alias="resultType")
    result: list[MatrixSeries] = Field(default_factory=list)


class VectorData(BaseModel):
    """Instant metric query result."""

    model_config = ConfigDict(populate_by_name=True)

    result_type: Literal["vector"] = Field(alias="resultType")
    result: list[VectorSample] = Field(default_factory=list)


QueryData = Annotated[StreamsData | MatrixData | VectorData, Field(discriminator="result_type")]


class QueryResponse(LokiResponse):
    """Response from /loki/api/v1/query_range."""

    data: QueryData


# label responses

class LabelsResponse(LokiResponse):
    """Response from /loki/api/v1/labels and /loki/api/v1/label/{name}/values."""

    data: list[str] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        """Loki sends null instead of [] when nothing matches."""
        return [] if v is None else v
