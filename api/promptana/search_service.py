"""
Prompt Search Service - Full-text search over a user's prompts

Runs the tag pre-filter, the counted/sorted/paginated full-text query and the
batch loaders for version content, catalogs and tags, then builds result DTOs
with snippets. Every query is scoped to the requesting user.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

import psycopg2

from promptana.api_errors import internal_error
from promptana.config.search_config import (
    SCORE_DECAY_PER_RESULT,
    SEARCH_TEXT_CONFIG,
    SORT_RELEVANCE,
    SORT_UPDATED_AT_DESC,
)
from promptana.database_logger import DatabaseLogger
from promptana.database_pool import DatabasePoolManager
from promptana.debug_logger import log_database_operation
from promptana.search_models import (
    CatalogSummary,
    SearchPromptsParams,
    SearchPromptsResponse,
    SearchResultItem,
    TagSummary,
)
from promptana.snippet import generate_snippet

logger = logging.getLogger(__name__)

TS_QUERY = "websearch_to_tsquery(%(text_config)s::regconfig, %(q)s)"

ORDER_BY = {
    SORT_RELEVANCE: f"ts_rank_cd(p.search_vector, {TS_QUERY}) DESC, p.updated_at DESC, p.id DESC",
    SORT_UPDATED_AT_DESC: "p.updated_at DESC, p.id DESC",
}


def score_for_position(index: int) -> float:
    """Display score for the result at a position within the page"""
    return max(0.0, 1 - index * SCORE_DECAY_PER_RESULT)


def _unique(values: Iterable[Any]) -> List[str]:
    return list(dict.fromkeys(str(value) for value in values if value))


class PromptSearchService:
    """API for searching a user's prompts"""

    def __init__(self, db_pool: Optional[DatabasePoolManager] = None, text_config: str = SEARCH_TEXT_CONFIG):
        self.db_pool = db_pool or DatabasePoolManager.get_instance()
        self.text_config = text_config

    def _execute(self, cursor, operation: str, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Run one query and fetch all rows; any driver error fails the search"""
        start_time = time.time()
        try:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        except psycopg2.Error as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(f"[search] {operation} query failed: {e}")
            DatabaseLogger.log_query(operation, query, params, success=False, duration_ms=duration_ms, error=str(e))
            DatabaseLogger.log_error(operation, str(e), DatabaseLogger.categorize_error(e), e)
            raise internal_error() from e

        DatabaseLogger.log_query(
            operation, query, params,
            duration_ms=(time.time() - start_time) * 1000,
            rows_affected=len(rows)
        )
        return rows

    @log_database_operation("search_prompts")
    def search_for_user(self, user_id: str, params: SearchPromptsParams) -> SearchPromptsResponse:
        """
        Search prompts for a user using PostgreSQL full-text search

        Args:
            user_id: Owner of the prompts being searched
            params: Validated search parameters

        Returns:
            SearchPromptsResponse with one page of results and the exact total

        Raises:
            ApiError: 500 INTERNAL_ERROR when any query fails
        """
        try:
            with self.db_pool.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    return self._search(cursor, user_id, params)
                finally:
                    cursor.close()
        except ConnectionError as e:
            logger.error(f"[search] no database connection: {e}")
            raise internal_error() from e

    def _search(self, cursor, user_id: str, params: SearchPromptsParams) -> SearchPromptsResponse:
        prompt_ids: Optional[List[str]] = None
        if params.tag_ids:
            prompt_ids = self.resolve_tag_filter(cursor, user_id, params.tag_ids)
            if not prompt_ids:
                # No prompt carries any of the tags; the main query cannot match
                return SearchPromptsResponse.empty(params)

        total, rows = self.query_prompts(cursor, user_id, params, prompt_ids)
        if not rows:
            return SearchPromptsResponse.empty(params, total=total)

        version_content = self.load_version_content(
            cursor, user_id, _unique(row['current_version_id'] for row in rows)
        )
        catalogs = self.load_catalogs(cursor, user_id, _unique(row['catalog_id'] for row in rows))
        tags_by_prompt = self.load_tag_summaries(cursor, user_id, _unique(row['id'] for row in rows))

        items = []
        for index, row in enumerate(rows):
            prompt_id = str(row['id'])
            version_id = row.get('current_version_id')
            catalog_id = row.get('catalog_id')
            content = version_content.get(str(version_id), "") if version_id else ""

            items.append(SearchResultItem(
                id=prompt_id,
                title=row['title'],
                snippet=generate_snippet(content, params.q),
                score=score_for_position(index),
                catalog=catalogs.get(str(catalog_id)) if catalog_id else None,
                tags=tags_by_prompt.get(prompt_id, []),
                updated_at=row['updated_at'],
            ))

        logger.debug(f"[search] user {user_id}: page {params.page} has {len(items)} of {total} matches")
        return SearchPromptsResponse(items=items, page=params.page, page_size=params.page_size, total=total)

    def resolve_tag_filter(self, cursor, user_id: str, tag_ids: List[str]) -> List[str]:
        """IDs of the user's prompts carrying at least one of the tags"""
        rows = self._execute(cursor, "search_tag_filter", """
            SELECT prompt_id
            FROM prompt_tags
            WHERE user_id = %(user_id)s
              AND tag_id = ANY(%(tag_ids)s::uuid[])
        """, {"user_id": user_id, "tag_ids": list(tag_ids)})
        return _unique(row['prompt_id'] for row in rows)

    def query_prompts(
        self,
        cursor,
        user_id: str,
        params: SearchPromptsParams,
        prompt_ids: Optional[List[str]] = None
    ) -> Tuple[int, List[Dict[str, Any]]]:
        """
        Count all matches and fetch the requested page.

        Returns:
            (total, rows) where rows hold id, title, catalog_id,
            current_version_id and updated_at in result order
        """
        conditions = [
            "p.user_id = %(user_id)s",
            f"p.search_vector @@ {TS_QUERY}",
        ]
        query_params: Dict[str, Any] = {
            "user_id": user_id,
            "q": params.q,
            "text_config": self.text_config,
        }

        if params.catalog_id:
            conditions.append("p.catalog_id = %(catalog_id)s")
            query_params["catalog_id"] = params.catalog_id

        if prompt_ids is not None:
            conditions.append("p.id = ANY(%(prompt_ids)s::uuid[])")
            query_params["prompt_ids"] = list(prompt_ids)

        where_clause = " AND ".join(conditions)

        count_rows = self._execute(cursor, "search_count", f"""
            SELECT COUNT(*) AS total
            FROM prompts p
            WHERE {where_clause}
        """, query_params)
        total = int(count_rows[0]['total']) if count_rows else 0

        page_params = dict(query_params, limit=params.page_size, offset=params.offset)
        rows = self._execute(cursor, "search_prompts", f"""
            SELECT
                p.id,
                p.title,
                p.catalog_id,
                p.current_version_id,
                p.updated_at
            FROM prompts p
            WHERE {where_clause}
            ORDER BY {ORDER_BY.get(params.sort, ORDER_BY[SORT_RELEVANCE])}
            LIMIT %(limit)s OFFSET %(offset)s
        """, page_params)

        return total, rows

    def load_version_content(self, cursor, user_id: str, version_ids: List[str]) -> Dict[str, str]:
        """Content of the given prompt versions, keyed by version ID"""
        if not version_ids:
            return {}

        rows = self._execute(cursor, "search_load_versions", """
            SELECT id, content
            FROM prompt_versions
            WHERE user_id = %(user_id)s
              AND id = ANY(%(version_ids)s::uuid[])
        """, {"user_id": user_id, "version_ids": version_ids})
        return {str(row['id']): row['content'] for row in rows}

    def load_catalogs(self, cursor, user_id: str, catalog_ids: List[str]) -> Dict[str, CatalogSummary]:
        """Catalog summaries keyed by catalog ID"""
        if not catalog_ids:
            return {}

        rows = self._execute(cursor, "search_load_catalogs", """
            SELECT id, name
            FROM catalogs
            WHERE user_id = %(user_id)s
              AND id = ANY(%(catalog_ids)s::uuid[])
        """, {"user_id": user_id, "catalog_ids": catalog_ids})
        return {str(row['id']): CatalogSummary(id=str(row['id']), name=row['name']) for row in rows}

    def load_tag_summaries(self, cursor, user_id: str, prompt_ids: List[str]) -> Dict[str, List[TagSummary]]:
        """Tag summaries for each prompt, keyed by prompt ID"""
        result: Dict[str, List[TagSummary]] = {}
        if not prompt_ids:
            return result

        links = self._execute(cursor, "search_load_prompt_tags", """
            SELECT prompt_id, tag_id
            FROM prompt_tags
            WHERE user_id = %(user_id)s
              AND prompt_id = ANY(%(prompt_ids)s::uuid[])
            ORDER BY created_at
        """, {"user_id": user_id, "prompt_ids": prompt_ids})

        tag_ids = _unique(link['tag_id'] for link in links)
        if not tag_ids:
            return result

        tags = self._execute(cursor, "search_load_tags", """
            SELECT id, name
            FROM tags
            WHERE user_id = %(user_id)s
              AND id = ANY(%(tag_ids)s::uuid[])
        """, {"user_id": user_id, "tag_ids": tag_ids})
        tag_by_id = {str(tag['id']): TagSummary(id=str(tag['id']), name=tag['name']) for tag in tags}

        for link in links:
            tag = tag_by_id.get(str(link['tag_id']))
            if tag is None:
                continue
            result.setdefault(str(link['prompt_id']), []).append(tag)

        return result
