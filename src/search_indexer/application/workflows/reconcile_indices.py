from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from src.config.logger_config import logger
from src.search_indexer.application.ports import SearchIndexPort
from src.search_indexer.domain.dates import utc_now
from src.search_indexer.domain.index_settings import default_index_settings
from src.search_indexer.domain.models import IndexSyncResult, ReconciliationPlan, SearchRecord, SyncState
from src.search_indexer.domain.reconciliation import ReconciliationPlanner


@dataclass(frozen=True)
class ReconcileConfig:
    partial: bool = True
    force_update: bool = False
    observe_only: bool = False
    batch_size: int = 1000
    settings: Mapping[str, Any] | None = None


def _chunks(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start : start + size]


class ReconciliationEngine:
    """Brings each remote index in line with a freshly synthesized batch.

    Indices are synced one after another. A failure while reading or writing
    one index is captured in that index's result and the next index proceeds.
    """

    def __init__(self, client: SearchIndexPort, config: ReconcileConfig | None = None) -> None:
        self.client = client
        self.config = config or ReconcileConfig()
        self.settings = dict(self.config.settings) if self.config.settings is not None else default_index_settings()
        self.last_plans: dict[str, ReconciliationPlan] = {}

    async def sync_all(
        self,
        records_by_index: Mapping[str, Sequence[SearchRecord]],
        now: datetime | None = None,
    ) -> list[IndexSyncResult]:
        results = []
        for index_name in sorted(records_by_index):
            results.append(await self.sync_index(index_name, records_by_index[index_name], now=now))
        failed = [result.index_name for result in results if not result.ok]
        if failed:
            logger.warning("{} of {} indices failed to sync: {}", len(failed), len(results), ", ".join(failed))
        else:
            logger.info("All {} indices synced", len(results))
        return results

    async def sync_index(
        self,
        index_name: str,
        records: Sequence[SearchRecord],
        now: datetime | None = None,
    ) -> IndexSyncResult:
        current = now or utc_now()
        state = SyncState.START
        mode = "full" if not self.config.partial else ("forced" if self.config.force_update else "partial")
        logger.info("Syncing index {} ({} records, {} mode)", index_name, len(records), mode)
        try:
            exists = await self.client.exists(index_name)
            if not exists and not records:
                logger.info("Index {} has no records and does not exist, nothing to sync", index_name)
                return IndexSyncResult(
                    index_name=index_name,
                    record_count=0,
                    status="success",
                    state=SyncState.DONE,
                )
            if not exists and not self.config.observe_only:
                logger.info("Index {} does not exist, creating with default settings", index_name)
                await self.client.configure(index_name, self.settings)

            if not self.config.partial:
                state = SyncState.APPLYING
                if not self.config.observe_only:
                    if exists:
                        await self.client.clear(index_name)
                    await self._upsert(index_name, records)
                logger.info("Replaced index {} with {} records", index_name, len(records))
                return IndexSyncResult(
                    index_name=index_name,
                    record_count=len(records),
                    status="success",
                    state=SyncState.DONE,
                    upserted=len(records),
                )

            state = SyncState.STREAMING
            planner = ReconciliationPlanner(records, force_update=self.config.force_update, now=current)
            if exists:
                async for page in self.client.browse_all(index_name):
                    planner.observe_page(page)

            state = SyncState.DIFFING
            plan = planner.finish()
            self.last_plans[index_name] = plan
            logger.info(
                "Plan for {}: {} existing, {} new, {} updated, {} unchanged, {} deleted",
                index_name,
                planner.observed_total,
                plan.added_total,
                plan.updated_total,
                plan.unchanged_total,
                len(plan.to_delete),
            )

            state = SyncState.APPLYING
            if self.config.observe_only:
                logger.info("Observe-only mode: no changes written to {}", index_name)
            else:
                for chunk in _chunks(plan.to_delete, self.config.batch_size):
                    await self.client.delete_batch(index_name, list(chunk))
                await self._upsert(index_name, plan.to_upsert)

            return IndexSyncResult(
                index_name=index_name,
                record_count=len(records),
                status="success",
                state=SyncState.DONE,
                upserted=len(plan.to_upsert),
                deleted=len(plan.to_delete),
                unchanged=plan.unchanged_total,
            )
        except Exception as exc:
            logger.error("Sync failed for index {} during {}: {}", index_name, state.value, exc)
            return IndexSyncResult(
                index_name=index_name,
                record_count=len(records),
                status="failed",
                state=SyncState.FAILED,
                failed_state=state,
                error=f"{type(exc).__name__}: {exc}",
            )

    async def _upsert(self, index_name: str, records: Sequence[SearchRecord]) -> None:
        for chunk in _chunks(records, self.config.batch_size):
            await self.client.upsert_batch(index_name, [record.to_dict() for record in chunk])
