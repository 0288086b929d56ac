"""
Reshape raw Serper payloads into the schema returned by the tools.

Serper answers with the payload itself, but wrappers in front of it may nest
it under ``data`` or ``result``. The envelope is resolved once, up front, by
trying each strategy in ENVELOPE_STRATEGIES in order.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from webtools.models import (
    NormalizedScrapeResult,
    NormalizedSearchResult,
    SearchResultItem,
)

logger = logging.getLogger(__name__)

Extractor = Callable[[Any], Optional[Dict[str, Any]]]


def _nested(field: str) -> Extractor:
    def extract(payload: Any) -> Optional[Dict[str, Any]]:
        if isinstance(payload, dict):
            value = payload.get(field)
            if isinstance(value, dict):
                return value
        return None

    return extract


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _raw(payload: Any) -> Optional[Dict[str, Any]]:
    return payload if isinstance(payload, dict) else None


ENVELOPE_STRATEGIES: Tuple[Tuple[str, Extractor], ...] = (
    ("data", _nested("data")),
    ("result", _nested("result")),
    ("raw", _raw),
)


def unwrap_envelope(payload: Any) -> Dict[str, Any]:
    """Return the first envelope a strategy accepts, or an empty dict"""
    for _, extract in ENVELOPE_STRATEGIES:
        data = extract(payload)
        if data is not None:
            return data
    return {}


def format_search_results(response: Any) -> NormalizedSearchResult:
    """
    Format search results for return to the model

    Args:
        response: Raw Serper search payload

    Returns:
        NormalizedSearchResult with any answer box prepended to the organic results
    """
    data = unwrap_envelope(response)

    results: List[SearchResultItem] = []
    organic = data.get("organic")
    if isinstance(organic, list):
        for result in organic:
            if not isinstance(result, dict):
                logger.warning(f"Skipping organic result that is not an object: {result!r}")
                continue
            results.append(SearchResultItem(
                title=_text(result.get("title")),
                link=_text(result.get("link")),
                snippet=_text(result.get("snippet")),
                position=_int(result.get("position"), 0),
            ))

    answer_box = data.get("answerBox")
    if isinstance(answer_box, dict):
        results.insert(0, SearchResultItem(
            title=_text(answer_box.get("title")),
            link=_text(answer_box.get("link")),
            snippet=_text(answer_box.get("answer") or answer_box.get("snippet")),
            is_answer_box=True,
        ))
    else:
        answer_box = None

    return NormalizedSearchResult(
        results=results,
        count=len(results),
        answer_box=answer_box,
        knowledge_graph=data.get("knowledgeGraph"),
        related_questions=data.get("peopleAlsoAsk"),
        related_searches=data.get("relatedSearches"),
        credits=data.get("credits") or 0,
        search_parameters=data.get("searchParameters"),
    )


def format_scrape_results(response: Any, url: Optional[str]) -> NormalizedScrapeResult:
    """
    Format scrape results for return to the model

    Serper's scrape payload has no URL, so the caller's URL is echoed back.

    Args:
        response: Raw Serper scrape payload
        url: The URL that was requested

    Returns:
        NormalizedScrapeResult
    """
    data = unwrap_envelope(response)

    metadata = data.get("metadata")
    title = metadata.get("title") if isinstance(metadata, dict) else None
    content = _text(data.get("text"))

    return NormalizedScrapeResult(
        title=_text(title),
        url=url or "",
        content=content,
        markdown=_text(data.get("markdown")),
        status_code=_int(data.get("statusCode") or 200, 200),
        word_count=len(content.split()),
        credits=data.get("credits") or 0,
    )
