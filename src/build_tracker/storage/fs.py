"""
FileSystem registry backend.

Both registry tables live in a single JSON document that is replaced
atomically on every write, so a crash mid-write leaves the previous
snapshot intact.
"""

from __future__ import annotations

import asyncio
import json
import os
import uuid
from pathlib import Path
from typing import Any

from ..concurrency import run_sync
from ..errors import ErrorContext, RegistryReadError, RegistryWriteError
from ..jobs.registry import ACTIVE_JOBS_TABLE, JOB_META_TABLE, JobRegistry, validate_key
from ..jobs.types import JobMeta
from ..logging import get_logger


class FileJobRegistry(JobRegistry):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._lock = asyncio.Lock()

    def _read_document(self) -> dict[str, dict[str, Any]]:
        try:
            raw = self.path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return {ACTIVE_JOBS_TABLE: {}, JOB_META_TABLE: {}}

        # UnicodeDecodeError and JSONDecodeError are both ValueErrors
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError:
            data = None
        if not isinstance(data, dict):
            get_logger().warning("Registry file is corrupt, starting empty", path=str(self.path))
            data = {}

        document: dict[str, dict[str, Any]] = {}
        for table in (ACTIVE_JOBS_TABLE, JOB_META_TABLE):
            value = data.get(table)
            if value is not None and not isinstance(value, dict):
                get_logger().warning(
                    "Registry table is corrupt, starting empty", path=str(self.path), table=table
                )
            document[table] = dict(value) if isinstance(value, dict) else {}
        return document

    def _write_document(self, document: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        payload = json.dumps(document, indent=2, ensure_ascii=False)
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    async def _load(self, operation: str) -> dict[str, dict[str, Any]]:
        try:
            return await run_sync(self._read_document)
        except OSError as exc:
            raise RegistryReadError(
                f"Could not read registry file {self.path}",
                context=ErrorContext(operation=operation),
                cause=exc,
            ) from exc

    async def _mutate(self, operation: str, mutate, **context: str | None) -> Any:
        """Read-modify-write the document under the lock."""
        async with self._lock:
            document = await self._load(operation)
            result, changed = mutate(document)
            if not changed:
                return result
            try:
                await run_sync(self._write_document, document)
            except OSError as exc:
                raise RegistryWriteError(
                    f"Could not write registry file {self.path}",
                    context=ErrorContext(operation=operation, **context),
                    cause=exc,
                ) from exc
            return result

    async def put(self, owner_id: str, job_id: str) -> None:
        validate_key("owner_id", owner_id)
        validate_key("job_id", job_id)

        def mutate(document):
            document[ACTIVE_JOBS_TABLE][owner_id] = job_id
            return None, True

        await self._mutate("put", mutate, owner_id=owner_id, job_id=job_id)

    async def get_all(self) -> dict[str, str]:
        async with self._lock:
            document = await self._load("get_all")
        return {str(k): str(v) for k, v in document[ACTIVE_JOBS_TABLE].items()}

    async def remove(self, owner_id: str, job_id: str | None = None) -> bool:
        def mutate(document):
            active = document[ACTIVE_JOBS_TABLE]
            current = active.get(owner_id)
            if current is None or (job_id is not None and current != job_id):
                return False, False
            del active[owner_id]
            return True, True

        return await self._mutate("remove", mutate, owner_id=owner_id, job_id=job_id)

    async def put_meta(self, job_id: str, meta: JobMeta) -> None:
        validate_key("job_id", job_id)

        def mutate(document):
            document[JOB_META_TABLE][job_id] = meta.to_dict()
            return None, True

        await self._mutate("put_meta", mutate, owner_id=meta.owner_id, job_id=job_id)

    async def get_meta(self, job_id: str) -> JobMeta | None:
        async with self._lock:
            document = await self._load("get_meta")
        raw = document[JOB_META_TABLE].get(job_id)
        if not isinstance(raw, dict):
            return None
        try:
            return JobMeta.from_dict(raw)
        except (TypeError, ValueError):
            get_logger().warning("Build metadata is corrupt, ignoring it", job_id=job_id)
            return None

    async def remove_meta(self, job_id: str) -> bool:
        def mutate(document):
            if document[JOB_META_TABLE].pop(job_id, None) is None:
                return False, False
            return True, True

        return await self._mutate("remove_meta", mutate, job_id=job_id)


__all__ = ["FileJobRegistry"]
