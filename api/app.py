# -*- coding: utf-8 -*-
"""
Crowdshift FastAPI Application
"""
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from api.cache import reroute_cache
from api.dependencies import registry
from api.routers import traffic, reroute, spots, calibrate, reports, signals

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry.load()
    engine = registry.get_engine()
    # 매 tick마다 reroute 캐시 무효화
    unsubscribe = engine.subscribe(reroute_cache.invalidate)
    if os.getenv("CROWDSHIFT_MONITORING", "true").lower() != "false":
        engine.start_monitoring()
    try:
        yield
    finally:
        unsubscribe()
        engine.shutdown()


app = FastAPI(title="Crowdshift", version="1.0.0", lifespan=lifespan)


allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(traffic.router, prefix="/api", tags=["traffic"])
app.include_router(reroute.router, prefix="/api", tags=["reroute"])
app.include_router(spots.router, prefix="/api", tags=["spots"])
app.include_router(calibrate.router, prefix="/api", tags=["calibrate"])
app.include_router(reports.router, prefix="/api", tags=["reports"])
app.include_router(signals.router, prefix="/api", tags=["signals"])


@app.get(
    "/health",
    summary="서비스 상태 확인",
    description="엔진 로드 여부, 스팟 수, 모니터링 상태, 구독자 수를 반환합니다.",
    response_description="status(healthy/degraded/unavailable), version, spots 수, monitoring 여부",
)
async def health():
    try:
        engine = registry.get_engine()
        spot_count = len(engine.directory)
        return {
            "status": "healthy" if spot_count > 0 and engine.is_monitoring else "degraded",
            "version": "1.0.0",
            "spots": spot_count,
            "monitoring": engine.is_monitoring,
            "ticks": engine.tick_count,
            "subscribers": engine.subscriber_count,
            "refresh_interval": engine.refresh_interval,
        }
    except RuntimeError:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "detail": "Engine not loaded"},
        )
