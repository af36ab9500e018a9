"""
Streaming query export.

The export endpoint answers with one JSON record per line. Records are
decoded as they arrive and collected in order; if anything goes wrong
mid-stream the partial result is thrown away.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import structlog

from tm3_client.exceptions import ExportError
from tm3_client.executor import RequestExecutor, RequestOptions

logger = structlog.get_logger(__name__)


async def iter_json_records(lines: AsyncIterator[str]) -> AsyncIterator[Any]:
    """Decode newline-delimited JSON, skipping blank lines."""
    line_number = 0
    async for line in lines:
        line_number += 1
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except ValueError as e:
            raise ExportError(f"Invalid export record on line {line_number}: {e}") from e


class StreamExporter:
    """Runs a query through the export endpoint and collects every record."""

    def __init__(self, executor: RequestExecutor):
        self.executor = executor

    async def export(self, options: RequestOptions) -> list[Any]:
        records: list[Any] = []

        async with self.executor.stream(options) as response:
            async for record in iter_json_records(response.aiter_lines()):
                records.append(record)

        logger.info("Export finished", count=len(records))
        return records
