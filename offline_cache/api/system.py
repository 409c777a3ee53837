"""
@description 系统状态接口
@responsibility 查询网络连通性状态和后台任务运行状态
"""

from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter

from offline_cache.schemas.api import ApiResponse, StatusResponse, success_response

if TYPE_CHECKING:
    from offline_cache.services.connectivity import ConnectivityGate
    from offline_cache.tasks.cache_sweeper import CacheSweeper
    from offline_cache.tasks.connectivity_monitor import ConnectivityMonitor

router = APIRouter()

_gate: Optional["ConnectivityGate"] = None
_monitor: Optional["ConnectivityMonitor"] = None
_sweeper: Optional["CacheSweeper"] = None


def init_system_router(
    gate: "ConnectivityGate",
    monitor: Optional["ConnectivityMonitor"] = None,
    sweeper: Optional["CacheSweeper"] = None,
):
    global _gate, _monitor, _sweeper
    _gate = gate
    _monitor = monitor
    _sweeper = sweeper


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


@router.get("/status", response_model=ApiResponse[StatusResponse])
async def get_status():
    return success_response(
        data=StatusResponse(
            online=_gate.is_online() if _gate is not None else False,
            last_checked_at=_isoformat(_gate.last_checked_at) if _gate else None,
            last_changed_at=_isoformat(_gate.last_changed_at) if _gate else None,
            monitor_running=_monitor.running if _monitor is not None else False,
            sweeper_running=_sweeper.running if _sweeper is not None else False,
            last_sweep_at=_isoformat(_sweeper.last_run_at) if _sweeper else None,
        ),
        message="获取系统状态成功",
    )
