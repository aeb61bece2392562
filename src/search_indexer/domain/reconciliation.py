from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable, Mapping

from src.search_indexer.domain.dates import clamp_future_date, is_more_recent, iso_timestamp, parse_timestamp, utc_now
from src.search_indexer.domain.models import ReconciliationPlan, SearchRecord


@dataclass(frozen=True)
class UpdateDecision:
    should_update: bool
    reason: str


def decide_update(
    new_record: SearchRecord,
    existing: Mapping[str, Any],
    force_update: bool = False,
) -> UpdateDecision:
    if force_update:
        return UpdateDecision(True, "forced")
    new_ts = new_record.source_lastmod
    old_ts = existing.get("sourceLastmod")
    if parse_timestamp(new_ts) is None:
        return UpdateDecision(True, "missing_new_timestamp")
    if parse_timestamp(old_ts) is None:
        return UpdateDecision(True, "missing_existing_timestamp")
    if is_more_recent(new_ts, old_ts):
        return UpdateDecision(True, "newer_source")
    return UpdateDecision(False, "not_newer")


class ReconciliationPlanner:
    """Streaming diff of one index's existing records against a fresh batch.

    Feed every existing record through ``observe`` as pages arrive, then call
    ``finish`` once the scan is complete.
    """

    def __init__(
        self,
        new_records: Iterable[SearchRecord],
        force_update: bool = False,
        now: datetime | None = None,
    ) -> None:
        self.force_update = force_update
        self.now = now or utc_now()
        # insertion order is kept so leftovers are emitted in synthesis order
        self._pending: dict[str, SearchRecord] = {}
        for record in new_records:
            self._pending[record.object_id] = record
        self._updates: list[SearchRecord] = []
        self._deletes: list[str] = []
        self._unchanged = 0
        self._seen = 0
        self._finished = False

    @property
    def observed_total(self) -> int:
        return self._seen

    def observe(self, existing: Mapping[str, Any]) -> None:
        if self._finished:
            raise RuntimeError("ReconciliationPlanner already finished")
        object_id = existing.get("objectID")
        if not object_id:
            return
        self._seen += 1
        new_record = self._pending.pop(object_id, None)
        if new_record is None:
            self._deletes.append(object_id)
            return
        decision = decide_update(new_record, existing, self.force_update)
        if decision.should_update:
            self._updates.append(self._restamp(new_record))
        else:
            self._unchanged += 1

    def observe_page(self, page: Iterable[Mapping[str, Any]]) -> None:
        for existing in page:
            self.observe(existing)

    def finish(self) -> ReconciliationPlan:
        self._finished = True
        added = [self._restamp(record) for record in self._pending.values()]
        return ReconciliationPlan(
            to_upsert=tuple(self._updates + added),
            to_delete=tuple(self._deletes),
            added_total=len(added),
            updated_total=len(self._updates),
            unchanged_total=self._unchanged,
        )

    def _restamp(self, record: SearchRecord) -> SearchRecord:
        return replace(
            record,
            last_modified=clamp_future_date(record.last_modified, now=self.now),
            indexed_at=iso_timestamp(self.now),
        )


def plan_reconciliation(
    existing_records: Iterable[Mapping[str, Any]],
    new_records: Iterable[SearchRecord],
    force_update: bool = False,
    now: datetime | None = None,
) -> ReconciliationPlan:
    planner = ReconciliationPlanner(new_records, force_update=force_update, now=now)
    planner.observe_page(existing_records)
    return planner.finish()
