from __future__ import annotations

import hashlib
import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


def canonical_json(obj: dict[str, Any]) -> str:
    # stable serialization: storage values compare byte-for-byte and hashes are repeatable
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def run_id_from_config(cfg_raw: dict[str, Any], length: int = 12) -> str:
    """
    Same YAML content, same run_id. Used when run.run_id is "auto".
    """
    digest = hashlib.sha1(canonical_json(cfg_raw).encode("utf-8")).hexdigest()
    return digest[:length]


def random_visitor_id() -> str:
    return str(uuid.uuid4())


@dataclass(slots=True)
class RunIds:
    """
    Deterministic ids scoped to one replay run: <prefix>_<run_id>_<n>.
    """

    run_id: str
    _counters: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def next_id(self, prefix: str) -> str:
        n = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = n
        return f"{prefix}_{self.run_id}_{n:08d}"

    def factory(self, prefix: str) -> Callable[[], str]:
        return lambda: self.next_id(prefix)
