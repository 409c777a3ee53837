"""
@description 网络连通性状态
@responsibility 保存最近一次探测结果，提供非阻塞的 is_online() 判断，并提供基于 HTTP 的探测实现
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import httpx
from loguru import logger


@dataclass(frozen=True)
class ProbeResult:
    """一次连通性探测结果"""

    connected: bool
    internet_reachable: bool

    @property
    def online(self) -> bool:
        # 只有链路已连接且可以访问互联网才算在线
        return self.connected and self.internet_reachable


class ConnectivityGate:
    """连通性闸门：只保存最后一次已知状态，从不阻塞调用方"""

    def __init__(self, initial_online: bool = True):
        self._online = initial_online
        self._last_result: Optional[ProbeResult] = None
        self._last_checked_at: Optional[datetime] = None
        self._last_changed_at: Optional[datetime] = None

    def is_online(self) -> bool:
        return self._online

    @property
    def last_result(self) -> Optional[ProbeResult]:
        return self._last_result

    @property
    def last_checked_at(self) -> Optional[datetime]:
        return self._last_checked_at

    @property
    def last_changed_at(self) -> Optional[datetime]:
        return self._last_changed_at

    def report(self, result: ProbeResult) -> None:
        """探测器/平台推送的唯一更新入口"""
        now = datetime.now()
        self._last_result = result
        self._last_checked_at = now

        online = result.online
        if online != self._online:
            self._online = online
            self._last_changed_at = now
            if online:
                logger.info("网络已恢复，切换为在线模式")
            else:
                logger.warning(
                    f"网络不可用（connected={result.connected}, "
                    f"internet_reachable={result.internet_reachable}），切换为离线模式"
                )


class HttpConnectivityProbe:
    """通过轻量的 204 接口判断互联网是否可达"""

    def __init__(
        self,
        url: str = "https://www.gstatic.com/generate_204",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def __call__(self) -> ProbeResult:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    self._url, headers={"Cache-Control": "no-store"}
                )
        except httpx.ConnectError as e:
            # 无法建立连接（DNS 失败、无网络）
            logger.debug(f"连通性探测连接失败: {e}")
            return ProbeResult(connected=False, internet_reachable=False)
        except httpx.HTTPError as e:
            # 有连接但请求失败（超时等）
            logger.debug(f"连通性探测请求失败: {e}")
            return ProbeResult(connected=True, internet_reachable=False)

        reachable = 200 <= response.status_code < 400
        return ProbeResult(connected=True, internet_reachable=reachable)
