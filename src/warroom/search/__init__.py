"""Live search for the information-gathering agent."""
from .client import (
    SearchGateway,
    SearchGatewayError,
    SearchResult,
    SearchSource,
    TavilySearchClient,
    create_search_client,
)
