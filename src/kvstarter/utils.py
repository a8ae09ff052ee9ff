from __future__ import annotations

import json
from typing import Any


def trim_split(value: str, sep: str = ",") -> list[str]:
    return [part.strip() for part in value.split(sep)]


def env_key(flag_name: str, prefix: str) -> str:
    return prefix + flag_name.upper().replace("-", "_")


def load_json_text(text: str | bytes) -> Any:
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    return json.loads(text)


def join_url(base: str, path: str) -> str:
    return base.rstrip("/") + path
