"""In-memory stand-in for the Redis store used by the cache tests."""
import re
import time
from typing import Dict, List, Optional, Sequence, Tuple


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a Redis MATCH pattern, backslash escapes included."""
    out = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            out.append(".*")
        elif char == "?":
            out.append(".")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(char))
            else:
                out.append("[" + pattern[i + 1:end].replace("\\", "\\\\") + "]")
                i = end + 1
                continue
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("".join(out) + r"\Z", re.DOTALL)


class MockRedisStore:
    """
    In-memory stand-in for the Redis store.

    SCAN walks keys in insertion order and returns at most ``count``
    examined keys per page, so multi-page scans behave like the real thing
    even when keys are deleted between pages.
    """

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, float] = {}
        self.seq: Dict[str, int] = {}
        self.counter = 0
        self.calls: List[str] = []

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self._remove(key)

    def _remove(self, key: str) -> bool:
        if key not in self.data:
            return False
        del self.data[key]
        self.expiry.pop(key, None)
        self.seq.pop(key, None)
        return True

    async def get(self, key: str) -> Optional[str]:
        self.calls.append("get")
        self._purge(key)
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.calls.append("set")
        if key not in self.seq:
            self.counter += 1
            self.seq[key] = self.counter
        self.data[key] = value
        if ex:
            self.expiry[key] = time.monotonic() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        self.calls.append("delete")
        return sum(1 for key in keys if self._remove(key))

    async def exists(self, key: str) -> int:
        self.calls.append("exists")
        self._purge(key)
        return 1 if key in self.data else 0

    async def ttl(self, key: str) -> int:
        self.calls.append("ttl")
        self._purge(key)
        if key not in self.data:
            return -2
        if key not in self.expiry:
            return -1
        return max(int(round(self.expiry[key] - time.monotonic())), 0)

    async def scan(self, cursor: int, match: str, count: int) -> Tuple[int, List[str]]:
        self.calls.append("scan")
        regex = glob_to_regex(match)
        ordered = sorted((seq, key) for key, seq in self.seq.items() if seq > cursor)
        examined = ordered[:count]
        keys = [key for _, key in examined if regex.match(key)]
        if len(ordered) <= count:
            return 0, keys
        return examined[-1][0], keys

    async def pipeline_delete(self, keys: Sequence[str]) -> List[int]:
        self.calls.append("pipeline_delete")
        return [1 if self._remove(key) else 0 for key in keys]
