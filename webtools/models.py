from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from webtools.constants import (
    DEFAULT_NUM_RESULTS,
    DEFAULT_PAGE,
    DEFAULT_TIMEOUT_MS,
    INITIAL_RETRY_DELAY_MS,
    MAX_RETRIES,
    SCRAPE_URL,
    SEARCH_URL,
)


class ClientConfig(BaseModel):
    """Request settings for a Serper client; the API key is kept by the client"""

    model_config = ConfigDict(frozen=True)

    search_url: str = SEARCH_URL
    scrape_url: str = SCRAPE_URL
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Per-attempt deadline")
    max_retries: int = Field(default=MAX_RETRIES, ge=1, description="Total attempts per call")
    retry_delay_ms: int = Field(default=INITIAL_RETRY_DELAY_MS, gt=0, description="Backoff unit")


class SearchOptions(BaseModel):
    num: Optional[int] = None
    page: Optional[int] = None
    type: Optional[str] = None


class SearchRequest(BaseModel):
    q: str
    num: int = DEFAULT_NUM_RESULTS
    page: int = DEFAULT_PAGE
    type: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ScrapeRequest(BaseModel):
    url: str

    def to_body(self) -> Dict[str, Any]:
        return self.model_dump()


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


class RequestAttempt(BaseModel):
    attempt: int
    elapsed_ms: float
    outcome: AttemptOutcome
    status: int = 0


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class SearchResultItem(_CamelModel):
    title: str = ""
    link: str = ""
    snippet: str = ""
    position: Optional[int] = None
    is_answer_box: Optional[bool] = None


class NormalizedSearchResult(_CamelModel):
    results: List[SearchResultItem] = Field(default_factory=list)
    count: int = 0
    answer_box: Optional[Any] = None
    knowledge_graph: Optional[Any] = None
    related_questions: Optional[Any] = None
    related_searches: Optional[Any] = None
    credits: Any = 0
    search_parameters: Optional[Any] = None

    @field_serializer("results")
    def serialize_results(self, results: List[SearchResultItem]) -> List[Dict[str, Any]]:
        # Organic entries carry no isAnswerBox flag, the answer box carries no position
        return [item.model_dump(by_alias=True, exclude_none=True) for item in results]


class NormalizedScrapeResult(_CamelModel):
    title: str = ""
    url: str = ""
    content: str = ""
    markdown: str = ""
    status_code: int = 200
    word_count: int = 0
    credits: Any = 0
