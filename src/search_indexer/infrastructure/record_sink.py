import json
from collections import Counter
from pathlib import Path
from typing import Any, Mapping, Sequence

from pathvalidate import sanitize_filename

from src.config.logger_config import logger
from src.search_indexer.application.ports import RecordSinkPort
from src.search_indexer.domain.errors import StartupConfigError
from src.search_indexer.domain.models import IndexVerification, SearchRecord

EXPORT_SUFFIX = "-records.json"


def make_export_filename(index_name: str) -> str:
    safe_name = sanitize_filename(index_name, replacement_text="_").strip() or "index"
    return f"{safe_name}{EXPORT_SUFFIX}"


class JsonRecordExportSink(RecordSinkPort):
    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_index(
        self,
        index_name: str,
        product_name: str,
        settings: Mapping[str, Any],
        records: Sequence[SearchRecord],
    ) -> Path:
        file_path = self.output_dir / make_export_filename(index_name)
        payload = {
            "indexName": index_name,
            "productName": product_name,
            "settings": dict(settings),
            "records": [record.to_dict() for record in records],
        }
        with file_path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        logger.info("Exported {} records for {} to {}", len(records), index_name, str(file_path))
        return file_path


class ConsoleRecordSink(RecordSinkPort):
    SAMPLE_LIMIT = 3

    def write_index(
        self,
        index_name: str,
        product_name: str,
        settings: Mapping[str, Any],
        records: Sequence[SearchRecord],
    ) -> dict[str, Any]:
        types = Counter(record.type for record in records)
        pages = {record.url for record in records}
        summary = {
            "index_name": index_name,
            "product_name": product_name,
            "record_count": len(records),
            "page_count": len(pages),
            "types": dict(types),
        }
        logger.info(
            "Index {} ({}): {} records from {} pages, types {}",
            index_name,
            product_name,
            len(records),
            len(pages),
            dict(types),
        )
        for record in records[: self.SAMPLE_LIMIT]:
            logger.info("  {} | {} | {}", record.title, record.url + (record.fragment or ""), record.content[:80])
        return summary


def inspect_exports(export_dir: str | Path) -> list[IndexVerification]:
    """Check every exported index file: record count and the fields of the first record."""
    export_dir = Path(export_dir)
    if not export_dir.is_dir():
        raise StartupConfigError(f"Export directory {export_dir} not found; run the export mode first")
    files = sorted(export_dir.glob(f"*{EXPORT_SUFFIX}"))
    if not files:
        raise StartupConfigError(f"No exported index files found in {export_dir}")

    results = []
    for file_path in files:
        fallback_name = file_path.name[: -len(EXPORT_SUFFIX)]
        try:
            payload = json.loads(file_path.read_text(encoding="utf-8"))
            records = payload["records"]
            sample = records[0] if records else {}
            result = IndexVerification(
                index_name=payload.get("indexName") or fallback_name,
                source="export",
                exists=True,
                record_count=len(records),
                sample_fields=tuple(sample),
            )
            logger.info("{}: {} exported records", result.index_name, result.record_count)
            if result.sample_fields:
                logger.info("  sample record fields: {}", ", ".join(result.sample_fields))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Error checking {}: {}", file_path.name, exc)
            result = IndexVerification(
                index_name=fallback_name,
                source="export",
                exists=True,
                error=f"{type(exc).__name__}: {exc}",
            )
        results.append(result)
    return results
