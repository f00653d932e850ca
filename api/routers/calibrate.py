# -*- coding: utf-8 -*-
import asyncio
import os
from dataclasses import replace
from fastapi import APIRouter, HTTPException, Header, Depends
from api.schemas import CalibrationRequest, CalibrationResponse
from api.dependencies import registry
from api.cache import invalidate_reroute_cache
from crowdshift.config import CongestionWeights, EngineConfig, LevelThresholds
from typing import Optional

router = APIRouter()


def verify_api_key(x_api_key: Optional[str] = Header(None)) -> None:
    """API Key 검증 (env var CROWDSHIFT_API_KEY가 설정된 경우만)"""
    api_key = os.getenv("CROWDSHIFT_API_KEY")
    if api_key:  # env var가 설정된 경우만 검증
        if not x_api_key or x_api_key != api_key:
            raise HTTPException(status_code=403, detail="유효하지 않은 API 키입니다")


def _response(config: EngineConfig) -> CalibrationResponse:
    w = config.weights
    t = config.level_thresholds
    return CalibrationResponse(
        weights={
            "parking": w.parking,
            "passes": w.passes,
            "historical": w.historical,
            "weather": w.weather,
            "reports": w.reports,
        },
        thresholds={"yellow": t.yellow, "orange": t.orange, "red": t.red},
        peak_multipliers=dict(config.peak_multipliers),
        alternative_cutoff=config.alternative_cutoff,
        refresh_interval=config.refresh_interval_seconds,
    )


@router.post(
    "/calibrate",
    response_model=CalibrationResponse,
    summary="스코어링 파라미터 조정",
    description="혼잡도 가중치(합계 1.0), 단계 임계값, 시간대 배율, 대안 컷오프를 "
    "런타임에 조정합니다. 변경 시 우회 캐시가 자동 무효화되고 전체 스팟이 재계산됩니다.",
    response_description="적용된 파라미터 값",
)
async def calibrate(req: CalibrationRequest, _: None = Depends(verify_api_key)):
    """스코어링 파라미터를 런타임에 조정한다."""
    engine = registry.get_engine()

    with registry.engine_lock:
        current = engine.config
        w = current.weights
        t = current.level_thresholds
        multipliers = dict(current.peak_multipliers)

        for band in ("morning_peak", "afternoon_peak", "shoulder", "off_peak"):
            value = getattr(req, f"multiplier_{band}")
            if value is not None:
                multipliers[band] = value

        try:
            weights = CongestionWeights(
                parking=req.weight_parking if req.weight_parking is not None else w.parking,
                passes=req.weight_passes if req.weight_passes is not None else w.passes,
                historical=req.weight_historical if req.weight_historical is not None else w.historical,
                weather=req.weight_weather if req.weight_weather is not None else w.weather,
                reports=req.weight_reports if req.weight_reports is not None else w.reports,
            )
            thresholds = LevelThresholds(
                yellow=req.yellow_threshold if req.yellow_threshold is not None else t.yellow,
                orange=req.orange_threshold if req.orange_threshold is not None else t.orange,
                red=req.red_threshold if req.red_threshold is not None else t.red,
            )
            new_config = replace(
                current,
                weights=weights,
                level_thresholds=thresholds,
                peak_multipliers=multipliers,
                alternative_cutoff=(
                    req.alternative_cutoff if req.alternative_cutoff is not None
                    else current.alternative_cutoff
                ),
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        engine.set_config(new_config)

    # 새 가중치로 전체 재계산 (구독자에게도 전달됨)
    await asyncio.to_thread(engine.refresh)

    # calibrate 변경 시 reroute 캐시 무효화
    invalidate_reroute_cache()

    return _response(engine.config)


@router.get(
    "/calibrate",
    response_model=CalibrationResponse,
    summary="현재 파라미터 조회",
    description="현재 설정된 혼잡도 가중치, 단계 임계값, 시간대 배율, 대안 컷오프를 반환합니다.",
    response_description="현재 설정된 파라미터 값",
)
async def get_calibration():
    """현재 파라미터 값을 반환한다."""
    return _response(registry.get_engine().config)
