from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Sequence, TypeVar

from algoliasearch.http.exceptions import AlgoliaUnreachableHostException, RequestException
from algoliasearch.search.client import SearchClient

from src.config.logger_config import logger
from src.search_indexer.domain.errors import SyncError
from src.search_indexer.infrastructure.retry import RetryPolicy, retry_async

T = TypeVar("T")

BROWSE_PAGE_SIZE = 1000


def _as_dict(hit: Any) -> dict[str, Any]:
    return hit if isinstance(hit, dict) else hit.to_dict()


class AlgoliaSearchClient:
    """Search index adapter backed by the official async Algolia client.

    Host selection and per-host retries are left to the SDK. Failures that
    survive them are raised as SyncError so the reconciliation engine can
    record which index and operation broke.
    """

    def __init__(
        self,
        app_id: str,
        api_key: str,
        *,
        client: SearchClient | None = None,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = 1000,
        wait_for_tasks: bool = True,
    ) -> None:
        self.client = client if client is not None else SearchClient(app_id, api_key)
        self._owns_client = client is None
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, base_delay_seconds=1.0, exponential=True)
        self.batch_size = batch_size
        self.wait_for_tasks = wait_for_tasks

    async def __aenter__(self) -> "AlgoliaSearchClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.close()

    async def exists(self, index_name: str) -> bool:
        try:
            await self._call("exists", index_name, lambda: self.client.get_settings(index_name=index_name))
        except SyncError as exc:
            if exc.status == 404:
                return False
            raise
        return True

    async def configure(self, index_name: str, settings: Mapping[str, Any]) -> None:
        response = await self._call(
            "configure",
            index_name,
            lambda: self.client.set_settings(index_name=index_name, index_settings=dict(settings)),
        )
        await self._wait_task(index_name, response)
        logger.info("Configured settings for index {}", index_name)

    async def browse_all(self, index_name: str) -> AsyncIterator[list[dict[str, Any]]]:
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"hitsPerPage": BROWSE_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            response = await self._call(
                "browse",
                index_name,
                lambda: self.client.browse(index_name=index_name, browse_params=params),
            )
            hits = [_as_dict(hit) for hit in response.hits or []]
            if hits:
                yield hits
            cursor = response.cursor
            if not cursor:
                break

    async def upsert_batch(self, index_name: str, records: Sequence[Mapping[str, Any]]) -> None:
        objects = [dict(record) for record in records]
        await self._call(
            "upsert",
            index_name,
            lambda: self.client.save_objects(
                index_name=index_name,
                objects=objects,
                wait_for_tasks=self.wait_for_tasks,
                batch_size=self.batch_size,
            ),
        )
        logger.debug("Saved {} records to {}", len(objects), index_name)

    async def delete_batch(self, index_name: str, object_ids: Sequence[str]) -> None:
        ids = list(object_ids)
        await self._call(
            "delete",
            index_name,
            lambda: self.client.delete_objects(
                index_name=index_name,
                object_ids=ids,
                wait_for_tasks=self.wait_for_tasks,
                batch_size=self.batch_size,
            ),
        )
        logger.debug("Deleted {} records from {}", len(ids), index_name)

    async def clear(self, index_name: str) -> None:
        response = await self._call("clear", index_name, lambda: self.client.clear_objects(index_name=index_name))
        await self._wait_task(index_name, response)
        logger.info("Cleared all records from index {}", index_name)

    async def count_records(self, index_name: str) -> tuple[int, dict[str, Any] | None]:
        response = await self._call(
            "count",
            index_name,
            lambda: self.client.search_single_index(
                index_name=index_name,
                search_params={"query": "", "hitsPerPage": 1, "analytics": False},
            ),
        )
        hits = response.hits or []
        return int(response.nb_hits or 0), (_as_dict(hits[0]) if hits else None)

    async def _wait_task(self, index_name: str, response: Any) -> None:
        task_id = getattr(response, "task_id", None)
        if not self.wait_for_tasks or task_id is None:
            return
        await self._call(
            "wait_task",
            index_name,
            lambda: self.client.wait_for_task(index_name=index_name, task_id=task_id),
        )

    async def _call(self, operation: str, index_name: str, request: Callable[[], Awaitable[T]]) -> T:
        async def attempt() -> T:
            try:
                return await request()
            except RequestException as exc:
                raise SyncError(index_name, operation, exc.message, status=exc.status_code) from exc
            except AlgoliaUnreachableHostException as exc:
                raise SyncError(index_name, operation, exc.message) from exc

        return await retry_async(attempt, self.retry_policy, description=f"{operation} {index_name}")
