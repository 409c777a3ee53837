"""
@description 在线优先的请求调度器
@responsibility 在线时调用远程接口并回写缓存，离线或远程失败时回退到缓存
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from loguru import logger

from offline_cache.core.errors import NoDataAvailable, RemoteFetchFailed
from offline_cache.services.cache_keys import CacheKey
from offline_cache.services.connectivity import ConnectivityGate
from offline_cache.services.ttl_store import TTLStore

T = TypeVar("T")

RemoteFetch = Callable[[], Union[T, Awaitable[T]]]


class FetchDispatcher:
    """所有资源访问共用的在线优先/离线回退逻辑"""

    def __init__(
        self,
        ttl_store: TTLStore,
        gate: ConnectivityGate,
        fetch_timeout: Optional[float] = 15.0,
    ):
        self._store = ttl_store
        self._gate = gate
        self._fetch_timeout = fetch_timeout

    async def execute(
        self,
        remote_fetch: RemoteFetch,
        cache_key: CacheKey,
        ttl: Optional[float] = None,
        on_success: Optional[Callable[[Any], Awaitable[None]]] = None,
    ) -> Any:
        """
        执行一次资源请求

        1. 在线：调用 remote_fetch，成功后覆盖写入缓存并返回
        2. 离线或远程失败：读取缓存，命中则返回
        3. 均不可用：抛出 NoDataAvailable（远程异常作为 __cause__）

        Args:
            remote_fetch: 无参的同步或异步远程调用，受 fetch_timeout 限制
            cache_key: 缓存 (kind, identifier)
            ttl: 覆盖默认 TTL（秒）
            on_success: 远程成功并写入缓存后调用，不计入超时，缓存回退时不调用
        """
        online = self._gate.is_online()
        remote_error: Optional[RemoteFetchFailed] = None

        if online:
            try:
                result = await self._call_remote(remote_fetch)
            except Exception as e:
                remote_error = RemoteFetchFailed(cache_key.kind, cache_key.identifier, e)
                remote_error.__cause__ = e
                logger.warning(f"远程请求失败，尝试回退到缓存 {cache_key}: {e}")
            else:
                write = await self._store.set(
                    cache_key.kind, cache_key.identifier, result, ttl
                )
                if not write.ok:
                    # 缓存写入失败不影响本次返回
                    logger.warning(f"响应未能写入缓存 {cache_key}: {write.error}")
                if on_success is not None:
                    try:
                        await on_success(result)
                    except Exception as e:
                        logger.error(f"远程响应后续处理失败 {cache_key}: {e}")
                return result
        else:
            logger.debug(f"当前离线，直接读取缓存 {cache_key}")

        lookup = await self._store.lookup(cache_key.kind, cache_key.identifier)
        if lookup.hit:
            if remote_error is not None:
                logger.info(f"已使用缓存数据响应 {cache_key}")
            return lookup.payload

        logger.warning(f"远程与缓存均无可用数据 {cache_key}: {lookup.error}")
        raise NoDataAvailable(
            cache_key.kind, cache_key.identifier, online
        ) from remote_error

    async def _call_remote(self, remote_fetch: RemoteFetch) -> Any:
        result = remote_fetch()
        if inspect.isawaitable(result):
            if self._fetch_timeout is not None:
                return await asyncio.wait_for(result, timeout=self._fetch_timeout)
            return await result
        return result
