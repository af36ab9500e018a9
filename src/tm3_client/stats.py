"""
Per-client call counters.
"""

from dataclasses import asdict, dataclass, fields

CALL_KINDS = ("get", "put", "post", "delete", "query", "export")


@dataclass
class StatsCounters:
    """
    Number of logical API calls issued, by kind.

    A paginated listing counts once, however many pages it spans.
    """
    get: int = 0
    put: int = 0
    post: int = 0
    delete: int = 0
    query: int = 0
    export: int = 0

    def increment(self, kind: str) -> None:
        if kind not in CALL_KINDS:
            raise ValueError(f"Unknown call kind: {kind}")
        setattr(self, kind, getattr(self, kind) + 1)

    def reset(self) -> None:
        for f in fields(self):
            setattr(self, f.name, 0)

    def snapshot(self) -> dict[str, int]:
        return asdict(self)
