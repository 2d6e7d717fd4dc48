"""JSONL export of request results with buffered async writes."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Self

import aiofiles

from stresspro.engine.models import RequestResult


@dataclass
class JsonlWriterConfig:
    """Configuration for JsonlWriter.

    Attributes:
        file_path: Path to the JSONL output file.
        buffer_size: Number of records to buffer before auto-flush.
    """

    file_path: Path
    buffer_size: int = 100


class JsonlWriter:
    """Writes request results as one JSON object per line.

    Records are buffered in memory and flushed when the buffer reaches
    ``buffer_size`` or on close. RequestResult objects are written in their
    wire form.

    Example:
        ```python
        async with JsonlWriter(JsonlWriterConfig(Path("results.jsonl"))) as writer:
            await writer.write_batch(job.results)
        ```
    """

    def __init__(self, config: JsonlWriterConfig) -> None:
        if config.buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self._config = config
        self._buffer: list[str] = []
        self._file: Any = None
        self._closed = False
        self._written = 0

    @property
    def written(self) -> int:
        """Number of records flushed to disk."""
        return self._written

    async def __aenter__(self) -> Self:
        await self._open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _open(self) -> None:
        self._file = await aiofiles.open(
            self._config.file_path,
            mode="w",
            encoding="utf-8",
            newline="\n",
        )

    async def write(self, record: RequestResult | dict[str, Any]) -> None:
        """Buffer one record, flushing when the buffer is full.

        Raises:
            RuntimeError: If the writer has been closed.
        """
        if self._closed:
            raise RuntimeError("Cannot write to closed writer")
        if self._file is None:
            await self._open()

        payload = record.to_dict() if isinstance(record, RequestResult) else record
        self._buffer.append(json.dumps(payload, ensure_ascii=False))

        if len(self._buffer) >= self._config.buffer_size:
            await self.flush()

    async def write_batch(self, records: list[RequestResult] | list[dict[str, Any]]) -> int:
        """Write multiple records. Returns count written."""
        for record in records:
            await self.write(record)
        return len(records)

    async def flush(self) -> None:
        """Write buffered lines to the file."""
        if self._file is None or not self._buffer:
            return

        await self._file.write("".join(line + "\n" for line in self._buffer))
        await self._file.flush()
        self._written += len(self._buffer)
        self._buffer.clear()

    async def close(self) -> None:
        """Flush remaining records and close the file. Safe to call twice."""
        if self._closed:
            return

        await self.flush()
        self._closed = True

        if self._file is not None:
            await self._file.close()
            self._file = None
