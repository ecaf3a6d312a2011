from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def tokenize(text: str, min_len: int = 3) -> set[str]:
    # Treat underscores as separators so "order_date" matches "order date".
    t = text.lower().replace("_", " ")
    t = re.sub(r"[^a-z0-9]+", " ", t)
    return {x for x in t.split() if len(x) >= min_len}


def write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, ensure_ascii=False, default=str) + "\n", encoding="utf-8")
