"""Generation set reconciliation.

Given the generation published two runs ago (``previous``), the generation
that is live now (``current``) and the freshly built ``candidate`` set, work
out which files have to be uploaded and which can be purged from the store.

Files are identified by name only.  Names are expected to embed a content
fingerprint, so a name that is already live is never uploaded again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List


@dataclass(frozen=True)
class ReconciliationResult:
    """Files to upload and delete for one publish run."""

    upload_set: FrozenSet[str]
    delete_set: FrozenSet[str]

    @property
    def uploads(self) -> List[str]:
        return sorted(self.upload_set)

    @property
    def deletes(self) -> List[str]:
        return sorted(self.delete_set)

    @property
    def has_changes(self) -> bool:
        return bool(self.upload_set or self.delete_set)

    def summary(self) -> str:
        parts = []
        if self.upload_set:
            parts.append(f"{len(self.upload_set)} to upload")
        if self.delete_set:
            parts.append(f"{len(self.delete_set)} to delete")
        return ", ".join(parts) if parts else "no changes"

    def to_dict(self) -> Dict[str, Any]:
        return {"upload": self.uploads, "delete": self.deletes}


def reconcile(
    previous: Iterable[str],
    current: Iterable[str],
    candidate: Iterable[str],
) -> ReconciliationResult:
    """Compute the upload and delete sets for a publish run.

    ``upload_set`` is everything in ``candidate`` that is not already live.
    ``delete_set`` is everything from ``previous`` that neither the live nor
    the upcoming generation still references, so a file stays addressable for
    one full cycle after it stops being the newest artifact.
    """

    previous_set = frozenset(previous)
    current_set = frozenset(current)
    candidate_set = frozenset(candidate)

    return ReconciliationResult(
        upload_set=candidate_set - current_set,
        delete_set=previous_set - (current_set | candidate_set),
    )


__all__ = ["ReconciliationResult", "reconcile"]
