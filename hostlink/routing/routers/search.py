"""
Search route

Forwards queries to the host's search index. An index that is not ready is
built once before the query; if that fails the caller gets an error reply.
"""

import logging

from ...host import HostServices, normalize_filters
from ..router import Operation, Router, replies_to
from ._common import unwrap

logger = logging.getLogger(__name__)

MAX_RESULTS = 200

SUMMARY_FIELDS = ("documentType", "folder", "id", "name", "package", "uuid", "img")


def summarize(document: dict) -> dict:
    summary = {field: document.get(field) for field in SUMMARY_FIELDS if field in document}
    summary["formattedMatch"] = document.get("name", "")
    return summary


def create_search_router(services: HostServices) -> Router:
    router = Router("searchRouter")
    index = services.search

    @router.route(Operation.PERFORM_SEARCH)
    @replies_to("search-results", results=[])
    async def perform_search(payload, context):
        query = payload.get("query") or ""
        logger.info(f"Received search request: {query!r}")

        if not index.ready:
            logger.info("Search index not ready, building it")
            built = await index.build()
            if built.is_failure():
                logger.error(f"Failed to build search index: {built.error}")
                context.fail("search-results", "Search index not ready", query=query, results=[])
                return

        filters = normalize_filters(payload.get("filter"))
        found = unwrap(await index.search(query, MAX_RESULTS, filters=filters))
        results = [summarize(doc) for doc in found]
        logger.info(f"Search returned {len(results)} results")

        context.reply(
            "search-results",
            query=query,
            filter=payload.get("filter"),
            results=results
        )

    return router
