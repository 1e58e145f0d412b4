from __future__ import annotations


class ProcessedFillCache:
    """
    Fill hash -> venue fill time (ms). Pruned by age so the map stays bounded
    while still covering the fetch lookback window.
    """

    def __init__(self) -> None:
        self._seen: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def contains(self, fill_hash: str) -> bool:
        return fill_hash in self._seen

    def mark(self, fill_hash: str, time_ms: int) -> None:
        self._seen[fill_hash] = time_ms

    def cleanup(self, cutoff_ms: int) -> int:
        """
        Drop entries whose fill time is strictly older than cutoff_ms. Returns how many were dropped.
        """
        stale = [h for h, t in self._seen.items() if t < cutoff_ms]
        for h in stale:
            del self._seen[h]
        return len(stale)
