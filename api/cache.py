# -*- coding: utf-8 -*-
"""
캐시 관리 모듈
- /reroute 엔드포인트용 LRU 캐시 (TTL = 갱신 주기, 최대 200개)
- 모니터링 tick마다, calibrate 변경 시 캐시 무효화
- Thread-safe: RLock으로 동시 접근 보호
"""
import threading
import time
from collections import OrderedDict
from typing import Optional, Dict, Any, Tuple


class RerouteCache:
    """
    /reroute 엔드포인트용 LRU 캐시 (thread-safe)
    - 캐시 키: (destination, user_location, limit) 튜플
    - TTL: 기본 10초 (엔진 갱신 주기와 동일)
    - 최대 200개 항목
    """

    def __init__(self, max_size: int = 200, ttl_seconds: float = 10):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self.cache: OrderedDict[Tuple, Dict[str, Any]] = OrderedDict()  # {key: {value, timestamp}}
        self._lock = threading.RLock()
        self.invalidations = 0

    @staticmethod
    def make_key(destination: str, user_location: Optional[Tuple[float, float]],
                 limit: Optional[int]) -> Tuple:
        # ~100m 단위로 좌표를 묶어서 키 폭증 방지
        loc = None
        if user_location is not None:
            loc = (round(user_location[0], 3), round(user_location[1], 3))
        return (destination.strip().lower(), loc, limit)

    def _cleanup_expired(self):
        """만료된 항목 제거 (caller must hold lock)"""
        now = time.time()
        expired_keys = [
            key for key, data in self.cache.items()
            if now - data["timestamp"] > self.ttl_seconds
        ]
        for key in expired_keys:
            del self.cache[key]

    def get(self, key: Tuple) -> Optional[Any]:
        with self._lock:
            self._cleanup_expired()
            if key in self.cache:
                self.cache.move_to_end(key)
                return self.cache[key]["value"]
            return None

    def set(self, key: Tuple, value: Any):
        with self._lock:
            self._cleanup_expired()
            if key in self.cache:
                self.cache.move_to_end(key)
            elif len(self.cache) >= self.max_size:
                self.cache.popitem(last=False)
            self.cache[key] = {
                "value": value,
                "timestamp": time.time(),
            }

    def invalidate(self, *_):
        """전체 캐시 무효화. 엔진 구독 콜백으로도 쓰인다 (인자 무시)."""
        with self._lock:
            self.cache.clear()
            self.invalidations += 1

    def __len__(self):
        with self._lock:
            return len(self.cache)


# 전역 캐시 인스턴스
reroute_cache = RerouteCache(max_size=200, ttl_seconds=10)


def invalidate_reroute_cache():
    """calibrate 변경 시 호출되는 함수"""
    reroute_cache.invalidate()
