"""Shared pytest fixtures for promptana."""

from __future__ import annotations

import re
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import psycopg2
import pytest

from promptana.config import database_config
from promptana.database_pool import DatabasePoolManager

BASE_TIME = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class FakePromptStore:
    """In-memory rows for the five tables prompt search reads."""

    prompts: List[Dict[str, Any]] = field(default_factory=list)
    versions: List[Dict[str, Any]] = field(default_factory=list)
    catalogs: List[Dict[str, Any]] = field(default_factory=list)
    tags: List[Dict[str, Any]] = field(default_factory=list)
    prompt_tags: List[Dict[str, Any]] = field(default_factory=list)

    def add_catalog(self, user_id: str, name: str) -> str:
        catalog_id = new_id()
        self.catalogs.append({"id": catalog_id, "user_id": user_id, "name": name})
        return catalog_id

    def add_tag(self, user_id: str, name: str) -> str:
        tag_id = new_id()
        self.tags.append({"id": tag_id, "user_id": user_id, "name": name})
        return tag_id

    def add_prompt(
        self,
        user_id: str,
        title: str,
        content: Optional[str] = None,
        *,
        catalog_id: Optional[str] = None,
        tag_ids: tuple = (),
        age_minutes: int = 0,
    ) -> str:
        prompt_id = new_id()
        version_id = None
        if content is not None:
            version_id = new_id()
            self.versions.append({"id": version_id, "prompt_id": prompt_id, "user_id": user_id, "content": content})
        self.prompts.append({
            "id": prompt_id,
            "user_id": user_id,
            "title": title,
            "catalog_id": catalog_id,
            "current_version_id": version_id,
            "updated_at": BASE_TIME - timedelta(minutes=age_minutes),
        })
        for position, tag_id in enumerate(tag_ids):
            self.prompt_tags.append({
                "prompt_id": prompt_id,
                "tag_id": tag_id,
                "user_id": user_id,
                "created_at": BASE_TIME + timedelta(seconds=position),
            })
        return prompt_id

    def searchable_text(self, prompt: Dict[str, Any]) -> str:
        parts = [prompt["title"]]
        parts += [c["name"] for c in self.catalogs if c["id"] == prompt["catalog_id"]]
        parts += [v["content"] for v in self.versions if v["id"] == prompt["current_version_id"]]
        return " ".join(parts).lower()


class FakeCursor:
    """Answers the search queries from a FakePromptStore, roughly like Postgres would."""

    def __init__(self, store: FakePromptStore, executed: list, fail_on: Optional[str]):
        self.store = store
        self.executed = executed
        self.fail_on = fail_on
        self._rows: List[Dict[str, Any]] = []
        self.closed = False

    def execute(self, query: str, params: Dict[str, Any]):
        self.executed.append((query, params))
        if self.fail_on and self.fail_on in query:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        self._rows = self._answer(query, params)

    def fetchall(self):
        return list(self._rows)

    def close(self):
        self.closed = True

    def _answer(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        user_id = params["user_id"]
        store = self.store

        if "FROM prompt_tags" in query and "tag_id = ANY" in query:
            return [
                {"prompt_id": link["prompt_id"]}
                for link in store.prompt_tags
                if link["user_id"] == user_id and link["tag_id"] in params["tag_ids"]
            ]

        if "FROM prompt_tags" in query:
            links = [
                link for link in store.prompt_tags
                if link["user_id"] == user_id and link["prompt_id"] in params["prompt_ids"]
            ]
            return sorted(links, key=lambda link: link["created_at"])

        if "FROM prompts p" in query:
            matched = self._match_prompts(params)
            if "COUNT(*)" in query:
                return [{"total": len(matched)}]
            offset, limit = params["offset"], params["limit"]
            return matched[offset:offset + limit]

        if "FROM prompt_versions" in query:
            return [
                {"id": v["id"], "content": v["content"]}
                for v in store.versions
                if v["user_id"] == user_id and v["id"] in params["version_ids"]
            ]

        if "FROM catalogs" in query:
            return [
                {"id": c["id"], "name": c["name"]}
                for c in store.catalogs
                if c["user_id"] == user_id and c["id"] in params["catalog_ids"]
            ]

        if "FROM tags" in query:
            return [
                {"id": t["id"], "name": t["name"]}
                for t in store.tags
                if t["user_id"] == user_id and t["id"] in params["tag_ids"]
            ]

        raise AssertionError(f"unexpected query: {query}")

    def _match_prompts(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        words = re.findall(r"\w+", params["q"].lower())
        matched = []
        for prompt in self.store.prompts:
            if prompt["user_id"] != params["user_id"]:
                continue
            if "catalog_id" in params and prompt["catalog_id"] != params["catalog_id"]:
                continue
            if "prompt_ids" in params and prompt["id"] not in params["prompt_ids"]:
                continue
            text = self.store.searchable_text(prompt)
            if words and all(word in text for word in words):
                matched.append(dict(prompt))
        matched.sort(key=lambda p: p["id"], reverse=True)
        matched.sort(key=lambda p: p["updated_at"], reverse=True)
        return matched


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    def cursor(self):
        return FakeCursor(self.pool.store, self.pool.executed, self.pool.fail_on)


class FakePool:
    """Stands in for DatabasePoolManager: one fake connection per checkout."""

    def __init__(self, store: FakePromptStore):
        self.store = store
        self.executed: List[tuple] = []
        self.fail_on: Optional[str] = None
        self.checkouts = 0

    @contextmanager
    def get_connection(self, retries: int = 3, backoff_factor: float = 1.5):
        self.checkouts += 1
        yield FakeConnection(self)

    def queries(self) -> List[str]:
        return [query for query, _ in self.executed]


@pytest.fixture(autouse=True)
def isolated_log_dir(tmp_path, monkeypatch):
    """Keep database log files inside the test's temporary directory."""
    log_dir = tmp_path / "logs"
    monkeypatch.setattr(database_config, "DB_LOG_DIR", log_dir)
    monkeypatch.delenv("DB_QUERY_LOGGING_ENABLED", raising=False)
    yield log_dir
    DatabasePoolManager.reset_instance()


@pytest.fixture
def store() -> FakePromptStore:
    return FakePromptStore()


@pytest.fixture
def fake_pool(store: FakePromptStore) -> FakePool:
    return FakePool(store)


@pytest.fixture
def user_a() -> str:
    return new_id()


@pytest.fixture
def user_b() -> str:
    return new_id()
