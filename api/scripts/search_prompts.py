#!/usr/bin/env python3
"""Run one prompt search as a given user and print the JSON response.

Usage:
  python3 api/scripts/search_prompts.py --user-id <uuid> --query "refund window"

DATABASE_URL is read from the environment or .env.
"""
import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from promptana.api_errors import ApiError
from promptana.config.search_config import SORT_OPTIONS
from promptana.database_pool import DatabasePoolManager
from promptana.debug_logger import configure_logging, correlation_scope
from promptana.search_models import SearchPromptsParams
from promptana.search_service import PromptSearchService


def main():
    load_dotenv()

    p = argparse.ArgumentParser(description="Full-text search over one user's prompts")
    p.add_argument("--user-id", "-u", required=True)
    p.add_argument("--query", "-q", required=True)
    p.add_argument("--tag-ids", help="comma separated tag UUIDs")
    p.add_argument("--catalog-id")
    p.add_argument("--page")
    p.add_argument("--page-size")
    p.add_argument("--sort", choices=SORT_OPTIONS)
    p.add_argument("--verbose", "-v", action="store_true")
    args = p.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        params = SearchPromptsParams.from_query_args({
            "q": args.query,
            "tagIds": args.tag_ids,
            "catalogId": args.catalog_id,
            "page": args.page,
            "pageSize": args.page_size,
            "sort": args.sort,
        })
        with correlation_scope():
            response = PromptSearchService().search_for_user(args.user_id, params)
    except ApiError as e:
        body, status = e.to_response()
        print(json.dumps(body, indent=2), file=sys.stderr)
        sys.exit(2 if status < 500 else 3)
    except (ValueError, ConnectionError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(3)
    finally:
        DatabasePoolManager.reset_instance()

    print(json.dumps(response.to_dict(), indent=2))


if __name__ == '__main__':
    main()
