"""
客户端入口：``upload`` 与 ``get``

两者都只和中继通信；密钥留在中继一侧，客户端不持有任何凭据。
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from application.dto import PreviewResult, UploadResult
from application.services.preview_service import PreviewService
from application.services.upload_service import MultipartUploadService, UploadOptions
from core.config import ClientSettings, settings as app_settings
from infrastructure.external.api_clients import PresignedTransferClient, RelayClient
from infrastructure.external.storage import open_source


def _relay_client(config: ClientSettings, transport: Optional[httpx.AsyncBaseTransport]) -> RelayClient:
    return RelayClient(
        config.relay_url,
        provider=config.provider,
        timeout=config.timeout,
        transport=transport,
    )


async def upload(
    file: Any,
    bucket_id: str,
    options: Optional[UploadOptions] = None,
    *,
    settings: Optional[ClientSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> UploadResult:
    """
    分片上传文件

    Args:
        file: bytes、文件路径或可 seek 的二进制文件对象
        bucket_id: 目标 bucket
        options: 进度回调、content type、分片大小与并发度
        settings: 客户端配置，默认取 ``settings.client``
        transport: 自定义 httpx 传输层（同时用于中继与预签名直传）

    Raises:
        InvalidRequest: 参数非法（bucket id、空文件、不支持的 file 类型）
        UploadFailed: 会话开始后的任何失败；会话已尽力中止
    """
    config = settings or app_settings.client
    opts = options or UploadOptions()
    source = open_source(file, content_type=opts.content_type, filename=opts.filename)

    relay = _relay_client(config, transport)
    transfer = PresignedTransferClient(timeout=config.timeout, transport=transport)
    service = MultipartUploadService(
        relay,
        transfer,
        part_size=config.part_size,
        concurrency=config.max_concurrency,
        part_retries=config.part_retries,
    )
    try:
        return await service.upload(source, bucket_id, opts)
    finally:
        await transfer.close()
        # a cancelled upload still owes the relay an abort call
        if not service.run_after_aborts(relay.close):
            await relay.close()


async def get(
    key: str,
    *,
    settings: Optional[ClientSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PreviewResult:
    """获取对象的短期预签名 GET URL；``expires_at`` 为 Unix 秒。"""
    config = settings or app_settings.client
    async with _relay_client(config, transport) as relay:
        return await PreviewService(relay).get(key)
