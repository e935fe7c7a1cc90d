"""
Pydantic models for the completion service response envelope.

Every backend endpoint answers {success, data, error}. success gates which
of data and error is meaningful.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import ApplicationError, MalformedResponseError


class Pricing(BaseModel):
    """Cost breakdown reported by the backend."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    input_price_per_1m: Optional[float] = None
    output_price_per_1m: Optional[float] = None
    model_id: Optional[str] = None


class TokenUsage(BaseModel):
    """Token counts of one completion."""

    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    pricing: Optional[Pricing] = None


class Timing(BaseModel):
    """Backend-measured timing, in milliseconds."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    response_time: Optional[float] = Field(default=None, alias="responseTime")
    duration: Optional[float] = None


class SearchResultItem(BaseModel):
    """One web search hit."""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    url: Optional[str] = None
    snippet: Optional[str] = None
    date: Optional[str] = None


class CompletionData(BaseModel):
    """The data member of a successful envelope."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    response: Any = None
    format: Optional[str] = None
    token_usage: Optional[TokenUsage] = Field(default=None, alias="tokenUsage")
    timing: Optional[Timing] = None
    warnings: Optional[List[str]] = None
    search_results: Optional[List[SearchResultItem]] = Field(default=None, alias="searchResults")
    agent: Optional[Dict[str, Any]] = None
    id: Optional[Union[str, int]] = None


class Envelope(BaseModel):
    """Uniform response wrapper."""

    model_config = ConfigDict(extra="allow")

    success: bool
    data: Optional[CompletionData] = None
    error: Optional[Any] = None


def parse_envelope(payload: Any) -> CompletionData:
    """
    Validate a decoded response body and unwrap its data.

    Args:
        payload: Decoded JSON body

    Returns:
        The data member

    Raises:
        MalformedResponseError: If the body is not an envelope, or reports
            success without data
        ApplicationError: If the envelope reports success: false
    """
    if not isinstance(payload, dict) or "success" not in payload:
        raise MalformedResponseError("Invalid response format: missing success flag")

    try:
        envelope = Envelope.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid response format: {e.error_count()} validation error(s)") from e

    if not envelope.success:
        raise ApplicationError(str(envelope.error) if envelope.error else "Request failed")
    if envelope.data is None:
        raise MalformedResponseError("Invalid response format: success without data")
    return envelope.data
