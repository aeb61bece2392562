import json
from pathlib import Path
from typing import Any, Mapping

from src.config.logger_config import logger
from src.search_indexer.application.ports import ReportSinkPort


class JsonReportSink(ReportSinkPort):
    def __init__(self, report_path: str | Path) -> None:
        self.report_path = Path(report_path)
        self.report_path.parent.mkdir(parents=True, exist_ok=True)

    def write_report(self, report: Mapping[str, Any]) -> Path:
        self.report_path.write_text(
            json.dumps(dict(report), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.info("Run report written: report_path={}", str(self.report_path))
        return self.report_path
