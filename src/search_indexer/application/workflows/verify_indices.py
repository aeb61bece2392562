from typing import Iterable

from src.config.logger_config import logger
from src.search_indexer.application.ports import SearchIndexPort
from src.search_indexer.domain.models import IndexVerification


class IndexVerifier:
    """Reports what each remote index currently holds, without writing to it."""

    def __init__(self, client: SearchIndexPort) -> None:
        self.client = client

    async def verify(self, index_names: Iterable[str]) -> list[IndexVerification]:
        results = []
        for index_name in index_names:
            results.append(await self.verify_index(index_name))
        missing = [result.index_name for result in results if not result.ok]
        if missing:
            logger.warning("{} of {} indices missing or unreadable: {}", len(missing), len(results), ", ".join(missing))
        return results

    async def verify_index(self, index_name: str) -> IndexVerification:
        try:
            if not await self.client.exists(index_name):
                logger.warning("{}: index does not exist", index_name)
                return IndexVerification(index_name=index_name, source="remote", exists=False)
            count, sample = await self.client.count_records(index_name)
        except Exception as exc:
            logger.error("Error checking {}: {}", index_name, exc)
            return IndexVerification(
                index_name=index_name,
                source="remote",
                exists=True,
                error=f"{type(exc).__name__}: {exc}",
            )

        fields = tuple(sample) if sample else ()
        logger.info("{}: {} records", index_name, count)
        if fields:
            logger.info("  sample record fields: {}", ", ".join(fields))
        return IndexVerification(
            index_name=index_name,
            source="remote",
            exists=True,
            record_count=count,
            sample_fields=fields,
        )
