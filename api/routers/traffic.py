# -*- coding: utf-8 -*-
"""
Traffic API Router
==================
Congestion scores, region stats, heatmap, forecasts and shaping lookups.
Every response carries refresh_interval so poll-based clients know the cadence.
"""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from api.dependencies import registry
from api.schemas import (
    CongestionListResponse, HeatmapResponse, PredictResponse, RegionStatsResponse,
    ShapingResponse, SpotCongestionResponse, SpotForecast,
)
from crowdshift.exceptions import InvalidSpot, MalformedSnapshot
from crowdshift.forecast import MAX_HOURS_AHEAD
from crowdshift.shaping import classify, policy_for, should_reroute

router = APIRouter(prefix="/traffic")


async def _call(fn, *args):
    """엔진 호출을 스레드로 넘기고 core 예외를 HTTP 오류로 변환한다."""
    try:
        return await asyncio.to_thread(fn, *args)
    except InvalidSpot as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (MalformedSnapshot, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logging.error(f"Traffic request failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="혼잡도 계산 중 오류가 발생했습니다")


@router.get(
    "/congestion",
    response_model=CongestionListResponse,
    summary="전체 스팟 혼잡도 조회",
    description="모든 스팟의 현재 혼잡도 점수(0-100), 단계, 요인별 점수, 추세, 예측과 "
    "지역 통계를 반환합니다. 오래된(stale) 항목은 먼저 재계산됩니다.",
    response_description="혼잡도 높은 순 점수 목록, 지역 통계, 갱신 주기",
)
async def get_all_congestion():
    engine = registry.get_engine()
    scores = await _call(engine.get_all_congestion)
    stats = await _call(engine.get_region_stats)
    return {
        "scores": [s.to_dict() for s in scores],
        "stats": stats.to_dict(),
        "refresh_interval": engine.refresh_interval,
    }


@router.get(
    "/congestion/{spot_id}",
    response_model=SpotCongestionResponse,
    summary="스팟 혼잡도 조회",
    description="단일 스팟의 혼잡도 점수를 반환합니다. 캐시가 갱신 주기보다 오래되면 "
    "해당 스팟만 동기적으로 재계산합니다.",
    response_description="혼잡도 점수와 요인별 분해",
)
async def get_spot_congestion(spot_id: str):
    engine = registry.get_engine()
    score = await _call(engine.get_congestion_score, spot_id)
    return {**score.to_dict(), "refresh_interval": engine.refresh_interval}


@router.get(
    "/stats",
    response_model=RegionStatsResponse,
    summary="지역 혼잡 통계",
    description="단계별 스팟 수, 평균 점수, 가장 붐비는/한산한 스팟, 추정 방문객 수를 반환합니다.",
    response_description="지역 통계",
)
async def get_region_stats():
    engine = registry.get_engine()
    stats = await _call(engine.get_region_stats)
    return {**stats.to_dict(), "refresh_interval": engine.refresh_interval}


@router.get(
    "/heatmap",
    response_model=HeatmapResponse,
    summary="혼잡도 히트맵",
    description="스팟별 좌표와 강도(score/100)를 반환합니다.",
    response_description="히트맵 포인트 목록",
)
async def get_heatmap():
    engine = registry.get_engine()
    points = await _call(engine.get_region_heatmap)
    return {"points": points, "refresh_interval": engine.refresh_interval}


@router.get(
    "/predict",
    response_model=PredictResponse,
    summary="혼잡도 예측",
    description="시간대 배율 곡선으로 N시간 후까지의 혼잡도를 예측합니다. "
    "spot_id를 생략하면 전체 스팟과 시간대별 지역 평균을 반환합니다.",
    response_description="스팟별 예측, 추세, 지역 평균 예측",
)
async def predict(
    spot_id: Optional[str] = Query(None, description="스팟 ID (생략 시 전체)"),
    hours: int = Query(3, ge=0, le=MAX_HOURS_AHEAD, description="예측 시간 수"),
):
    engine = registry.get_engine()
    if spot_id:
        spot_ids = [spot_id]
    else:
        spot_ids = [s.spot_id for s in await _call(engine.get_all_congestion)]

    spots = []
    for sid in spot_ids:
        score, predictions = await _call(engine.get_forecast, sid, hours)
        spots.append(SpotForecast(
            spot_id=score.spot_id,
            name=score.name,
            current_score=score.score,
            trend=engine.forecaster.classify_trend(score.score, predictions).value,
            predictions=[p.to_dict() for p in predictions],
        ))
    region = await _call(engine.get_region_forecast, hours)
    return PredictResponse(
        hours=hours,
        spots=spots,
        region=region,
        refresh_interval=engine.refresh_interval,
    )


@router.get(
    "/shaping",
    response_model=ShapingResponse,
    summary="트래픽 셰이핑 정책 조회",
    description="점수를 단계(GREEN/YELLOW/ORANGE/RED)로 분류하고 해당 단계의 "
    "개입 정책(랭킹 배율, 대안 노출, 주차 예약 차단 등)을 반환합니다.",
    response_description="단계, 우회 여부, 정책",
)
async def get_shaping(score: int = Query(..., ge=0, le=100)):
    thresholds = registry.get_engine().config.level_thresholds
    level = classify(score, thresholds)
    return {
        "score": score,
        "level": level.value,
        "should_reroute": should_reroute(level),
        "policy": policy_for(level).to_dict(),
    }
