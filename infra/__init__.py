# infra/__init__.py
from __future__ import annotations

import logging
from typing import Mapping, Any, Optional

from infra.http_client import HttpClient, HttpPort
from exchange.services.asset_directory import AssetDirectoryService
from exchange.services.endpoints import Endpoints, make_endpoints_from_cfg
from exchange.services.submission_service import ExchangeSubmitter

__all__ = ["HttpClient", "HttpContainer", "HttpPort"]


# ========== 轻量“容器”：启动/关闭 ==========
class HttpContainer:
    """
    负责 HttpClient 的创建、首次拉取资产目录、优雅关闭。
    - 组合根（应用入口）持有它。
    - 上层拿 container.directory.snapshot 构造 TransactionBuilder，
      签好的 envelope 交给 container.submitter。
    """
    def __init__(self, http: HttpClient, endpoints: Endpoints) -> None:
        self.http = http
        self.endpoints = endpoints
        self.directory = AssetDirectoryService(http, endpoints)
        self.submitter = ExchangeSubmitter(http, endpoints)

    @classmethod
    async def start(cls,
                    cfg: Mapping[str, Any],
                    logger: Optional[logging.Logger] = None,
                    *,
                    load_directory: bool = True,
                    ) -> "HttpContainer":
        http = HttpClient(cfg, logger=logger)
        container = cls(http, make_endpoints_from_cfg(cfg))
        if load_directory:
            try:
                await container.directory.refresh()
            except BaseException:
                await http.close()
                raise
        return container

    async def stop(self) -> None:
        await self.http.close()
