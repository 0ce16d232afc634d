"""
Google Custom Search client.
Search is best-effort context for the classifier: only a failed request is an
error, an unhelpful or unparseable answer still yields usable text.
"""

import httpx
import structlog
from pydantic import ValidationError

from investec_buckets.errors import SearchError
from investec_buckets.schemas.search import SearchItem, SearchResponse

logger = structlog.get_logger(__name__)

SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
RESULT_COUNT = 3


def format_search_results(items: list[SearchItem]) -> str:
    """Render results as numbered title / snippet / link blocks."""
    context = ""
    for rank, item in enumerate(items, start=1):
        context += f"{rank}. {item.title}\n"
        if item.snippet:
            context += f"   {item.snippet}\n"
        context += f"   {item.link}\n\n"
    return context


class GoogleSearchClient:
    """Issues one query and returns a compact textual summary of the top results."""

    def __init__(self, http: httpx.AsyncClient, api_key: str, engine_id: str):
        self.http = http
        self._api_key = api_key
        self._engine_id = engine_id

    async def search(self, query: str) -> str:
        try:
            response = await self.http.get(
                SEARCH_URL,
                params={
                    "key": self._api_key,
                    "cx": self._engine_id,
                    "q": query,
                    "num": RESULT_COUNT,
                },
            )
        except httpx.HTTPError as e:
            raise SearchError(f"search request failed: {e}") from e

        if not response.is_success:
            logger.warning("search_non_success", status=response.status_code)

        try:
            parsed = SearchResponse.model_validate_json(response.content)
        except ValidationError:
            first_line = response.text.splitlines()[0] if response.text else "<empty>"
            logger.warning("search_unparseable", query=query, response=first_line[:200])
            return f"Search completed for: {query}"

        context = format_search_results((parsed.items or [])[:RESULT_COUNT])
        if not context:
            return f"No relevant information found for: {query}"
        return context
