from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

import pytest
import requests


class FakeResponse:
    def __init__(self, body: bytes | str = b"", status_code: int = 200) -> None:
        self.content = body.encode("utf-8") if isinstance(body, str) else body
        self.status_code = status_code

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class FakeSession:
    """Routes GETs to canned answers; an exception instance is raised instead."""

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requested: list[str] = []
        self.closed = False
        self.verify: Any = True
        self.cert: Any = None

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requested.append(url)
        answer = self.routes.get(url)
        if answer is None:
            raise requests.ConnectionError(f"connection refused: {url}")
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, FakeResponse):
            return answer
        if isinstance(answer, (dict, list)):
            return FakeResponse(json.dumps(answer))
        return FakeResponse(answer)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeSession":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


@pytest.fixture(autouse=True)
def reset_starter_logger():
    """The CLI reconfigures the package logger; put it back for caplog."""
    package_logger = logging.getLogger("kvstarter")
    handlers, level, propagate = package_logger.handlers[:], package_logger.level, package_logger.propagate
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate


@pytest.fixture
def http() -> Callable[..., Callable[[], FakeSession]]:
    """Build a session factory over a shared route table; sessions are kept for inspection."""

    def make(routes: dict[str, Any]) -> Callable[[], FakeSession]:
        def factory() -> FakeSession:
            session = FakeSession(routes)
            factory.sessions.append(session)
            return session

        factory.sessions = []
        return factory

    return make


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def legacy_dir(tmp_path: Path) -> Path:
    """A v0.4 data directory with an empty log and no snapshot."""
    root = tmp_path / "data"
    (root / "snapshot").mkdir(parents=True)
    _write_json(root / "conf", {"commitIndex": 0, "peers": []})
    (root / "log").write_text("", encoding="utf-8")
    return root


def write_log(path: Path, entries: list[dict[str, Any]]) -> None:
    path.write_text("\n".join(json.dumps(entry) for entry in entries) + "\n", encoding="utf-8")


def write_json(path: Path, data: Any) -> None:
    _write_json(path, data)
