"""
@description 网络连通性监控任务
@responsibility 周期性探测网络状态并更新连通性闸门，同时接收平台推送的状态变化
"""

from typing import Awaitable, Callable

from loguru import logger

from offline_cache.services.connectivity import ConnectivityGate, ProbeResult
from offline_cache.tasks.periodic import PeriodicTask

Probe = Callable[[], Awaitable[ProbeResult]]


class ConnectivityMonitor(PeriodicTask):
    name = "连通性监控"

    def __init__(self, gate: ConnectivityGate, probe: Probe, interval: float = 30):
        super().__init__(interval)
        self._gate = gate
        self._probe = probe

    async def run_once(self) -> None:
        try:
            result = await self._probe()
        except Exception as e:
            # 探测器自身异常按离线处理
            logger.error(f"连通性探测异常: {e}")
            result = ProbeResult(connected=False, internet_reachable=False)
        self._gate.report(result)

    def push(self, connected: bool, internet_reachable: bool) -> None:
        """平台网络状态变化回调"""
        self._gate.report(
            ProbeResult(connected=connected, internet_reachable=internet_reachable)
        )
