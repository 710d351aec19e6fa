"""Multipart upload coordinator.

Splits a source into fixed-size parts, obtains one presigned PUT URL per
part through the relay, uploads parts concurrently, and finalizes the
session once every part has an ETag. Any failure aborts the session and
surfaces as a single ``UploadFailed``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from application.dto import (
    AbortUploadRequest,
    CompletedPartDTO,
    FinalizeUploadRequest,
    InitUploadRequest,
    PartUrlRequest,
    UploadResult,
)
from application.ports.storage import PartTransferPort, RelayPort, UploadSource
from core.logging_config import get_logger
from domain.common.exceptions import InvalidRequest, TransportError, UploadFailed
from domain.upload import (
    DEFAULT_PART_SIZE,
    PartDescriptor,
    ProgressSnapshot,
    UploadSession,
    plan_parts,
    validate_bucket_id,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], Any]

# strong references for fire-and-forget background tasks
_background_aborts: set[asyncio.Task] = set()


@dataclass
class UploadOptions:
    on_progress: Optional[ProgressCallback] = None
    content_type: Optional[str] = None
    filename: Optional[str] = None
    part_size: Optional[int] = None
    concurrency: Optional[int] = None


class MultipartUploadService:
    """Holds collaborators and tuning only; all session state is per call."""

    def __init__(
        self,
        relay: RelayPort,
        transfer: PartTransferPort,
        *,
        part_size: int = DEFAULT_PART_SIZE,
        concurrency: int = 4,
        part_retries: int = 0,
        retry_delay: float = 0.5,
    ):
        if concurrency < 1:
            raise InvalidRequest("Concurrency must be at least 1", field="concurrency")
        self._relay = relay
        self._transfer = transfer
        self._part_size = part_size
        self._concurrency = concurrency
        self._part_retries = part_retries
        self._retry_delay = retry_delay
        self._pending_aborts: set[asyncio.Task] = set()

    async def upload(self, source: UploadSource, bucket_id: str, options: Optional[UploadOptions] = None) -> UploadResult:
        opts = options or UploadOptions()
        validate_bucket_id(bucket_id)
        parts = plan_parts(source.size, opts.part_size or self._part_size)
        content_type = opts.content_type or source.content_type

        try:
            init = await self._relay.init_upload(
                InitUploadRequest(
                    bucket_id=bucket_id,
                    size=source.size,
                    content_type=content_type,
                    filename=opts.filename or source.filename,
                )
            )
        except Exception as exc:
            logger.error("upload_init_failed", bucket_id=bucket_id, error=str(exc))
            raise UploadFailed("Could not start upload session", cause=exc) from exc

        session = UploadSession(
            upload_id=init.upload_id,
            key=init.key,
            bucket_id=bucket_id,
            total_size=source.size,
            content_type=content_type,
            parts=parts,
        )
        logger.info(
            "upload_started",
            upload_id=session.upload_id,
            key=session.key,
            size=session.total_size,
            parts=len(parts),
        )

        try:
            await self._transfer_parts(session, source, opts)
            result = await self._finalize(session)
        except asyncio.CancelledError:
            logger.warning("upload_cancelled", upload_id=session.upload_id)
            self._abort_in_background(session)
            raise
        except Exception as exc:
            logger.error("upload_failed", upload_id=session.upload_id, error=str(exc))
            await self._abort(session)
            if isinstance(exc, UploadFailed):
                raise
            raise UploadFailed("Multipart upload failed", cause=exc, upload_id=session.upload_id) from exc

        logger.info("upload_completed", upload_id=session.upload_id, key=result.key)
        return result

    async def _transfer_parts(self, session: UploadSession, source: UploadSource, opts: UploadOptions) -> None:
        lock = asyncio.Lock()
        semaphore = asyncio.Semaphore(opts.concurrency or self._concurrency)
        tasks = [
            asyncio.create_task(self._upload_part(session, part, source, lock, semaphore, opts.on_progress))
            for part in session.parts
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            for task in sorted(done, key=tasks.index):
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def _upload_part(
        self,
        session: UploadSession,
        part: PartDescriptor,
        source: UploadSource,
        lock: asyncio.Lock,
        semaphore: asyncio.Semaphore,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        async with semaphore:
            session.ensure_active()
            data = await source.read_range(part.offset, part.length)
            if len(data) != part.length:
                raise InvalidRequest(
                    f"Short read for part {part.part_number}: {len(data)} of {part.length} bytes",
                    field="file",
                )
            try:
                etag = await self._put_with_retries(session, part, data)
            except Exception as exc:
                raise UploadFailed(
                    f"Part {part.part_number} failed",
                    cause=exc,
                    upload_id=session.upload_id,
                    part_number=part.part_number,
                ) from exc

        async with lock:
            snapshot = session.record_part(part.part_number, etag)
            logger.debug(
                "upload_part_completed",
                upload_id=session.upload_id,
                part_number=part.part_number,
                loaded=snapshot.loaded,
                total=snapshot.total,
            )
            if on_progress is not None:
                on_progress(snapshot)

    async def _put_with_retries(self, session: UploadSession, part: PartDescriptor, data: bytes) -> str:
        if self._part_retries <= 0:
            return await self._put_once(session, part, data)

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self._part_retries + 1),
            wait=wait_exponential(multiplier=self._retry_delay, min=self._retry_delay, max=self._retry_delay * 8),
            retry=retry_if_exception_type(TransportError),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.WARNING),
        )
        async for attempt in retrying:
            with attempt:
                return await self._put_once(session, part, data)
        raise UploadFailed("Part was not attempted", upload_id=session.upload_id)  # pragma: no cover

    async def _put_once(self, session: UploadSession, part: PartDescriptor, data: bytes) -> str:
        # a fresh URL per attempt: presigned URLs are single-use
        presigned = await self._relay.part_url(
            PartUrlRequest(upload_id=session.upload_id, key=session.key, part_number=part.part_number)
        )
        if presigned.part_number != part.part_number:
            raise InvalidRequest(
                f"Relay returned URL for part {presigned.part_number}, expected {part.part_number}",
                field="part_number",
            )
        session.assign_url(part.part_number, presigned.url)
        return await self._transfer.put_part(presigned.url, data)

    async def _finalize(self, session: UploadSession) -> UploadResult:
        if not session.is_complete:
            raise InvalidRequest("Cannot finalize before every part is uploaded", field="parts")
        parts = [
            CompletedPartDTO(part_number=p.part_number, etag=p.etag)
            for p in session.completed_parts()
        ]
        response = await self._relay.finalize_upload(
            FinalizeUploadRequest(upload_id=session.upload_id, key=session.key, parts=parts)
        )
        session.mark_finalized()
        return UploadResult(key=response.key or session.key)

    async def _abort(self, session: UploadSession) -> None:
        """Best-effort abort; failures are logged, never raised."""
        session.mark_aborted()
        try:
            await self._relay.abort_upload(AbortUploadRequest(upload_id=session.upload_id, key=session.key))
            logger.info("upload_aborted", upload_id=session.upload_id)
        except Exception as exc:
            logger.warning("upload_abort_failed", upload_id=session.upload_id, error=str(exc))

    def _abort_in_background(self, session: UploadSession) -> None:
        session.mark_aborted()
        task = asyncio.get_running_loop().create_task(self._abort(session))
        self._pending_aborts.add(task)
        task.add_done_callback(self._pending_aborts.discard)
        _keep_alive(task)

    def run_after_aborts(self, callback: Callable[[], Awaitable[Any]]) -> bool:
        """Run ``callback`` once pending background aborts finish.

        Lets the owner of the relay client defer closing it without blocking
        on the abort. Returns False, and schedules nothing, when no abort is
        pending.
        """
        pending = list(self._pending_aborts)
        if not pending:
            return False

        async def _run() -> None:
            await asyncio.gather(*pending, return_exceptions=True)
            await callback()

        _keep_alive(asyncio.get_running_loop().create_task(_run()))
        return True


def _keep_alive(task: asyncio.Task) -> None:
    _background_aborts.add(task)
    task.add_done_callback(_background_aborts.discard)
