from __future__ import annotations


class PartitionIndex:
    """
    group -> partition value -> ordered, de-duplicated list of item ids.

    Buckets are created on first insert and only removed by drop_bucket().
    Holds ids only; payloads live in the store's item table.
    Not synchronized: the owning store serializes access.
    """

    def __init__(self, groups: dict[str, dict[str, list[str]]] | None = None):
        self._groups: dict[str, dict[str, list[str]]] = {}
        for group, buckets in (groups or {}).items():
            for key, ids in buckets.items():
                bucket = self._bucket(group, key)
                for item_id in ids:
                    if item_id not in bucket:
                        bucket.append(item_id)

    def _bucket(self, group: str, key: str) -> list[str]:
        return self._groups.setdefault(group, {}).setdefault(key, [])

    def add(self, group: str, key: str, item_id: str) -> bool:
        """Append item_id to the bucket unless already present. True if added."""
        bucket = self._bucket(group, key)
        if item_id in bucket:
            return False
        bucket.append(item_id)
        return True

    def remove(self, group: str, key: str, item_id: str) -> bool:
        bucket = self._groups.get(group, {}).get(key)
        if not bucket or item_id not in bucket:
            return False
        bucket.remove(item_id)
        return True

    def discard(self, group: str, item_id: str) -> int:
        """Remove item_id from every bucket of `group`. Returns the count removed."""
        removed = 0
        for bucket in self._groups.get(group, {}).values():
            if item_id in bucket:
                bucket.remove(item_id)
                removed += 1
        return removed

    def ids(self, group: str, key: str) -> list[str]:
        return list(self._groups.get(group, {}).get(key, ()))

    def drop_bucket(self, group: str, key: str) -> bool:
        buckets = self._groups.get(group)
        if buckets is None or key not in buckets:
            return False
        del buckets[key]
        return True

    # live view for persistence; callers must not mutate it
    def view(self) -> dict[str, dict[str, list[str]]]:
        return self._groups
