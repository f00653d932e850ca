# -*- coding: utf-8 -*-
"""
Live Signal API Router
======================
The pass and parking subsystems push their latest readings here. A push recomputes the
spot immediately so the caller gets the score its reading produced.
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException

from api.cache import invalidate_reroute_cache
from api.dependencies import registry
from api.routers.calibrate import verify_api_key
from api.schemas import SignalRequest, SignalResponse
from crowdshift.exceptions import InvalidSpot, MalformedSnapshot

router = APIRouter()


@router.post(
    "/signals/{spot_id}",
    response_model=SignalResponse,
    summary="실시간 신호 입력",
    description="스팟의 시간당 입장 패스 수와 주차 점유율(% 또는 점유 대수)을 기록하고 "
    "해당 스팟의 혼잡도를 즉시 재계산합니다.",
    response_description="반영된 신호 목록과 재계산된 혼잡도",
)
async def push_signals(spot_id: str, req: SignalRequest, _: None = Depends(verify_api_key)):
    engine = registry.get_engine()
    readings = registry.get_readings()
    if spot_id not in engine.directory:
        raise HTTPException(status_code=404, detail=f"스팟을 찾을 수 없습니다: {spot_id}")
    if req.pass_volume is None and req.parking_occupancy_pct is None and req.occupied_slots is None:
        raise HTTPException(status_code=400, detail="최소 하나의 신호가 필요합니다")

    accepted = []
    try:
        if req.pass_volume is not None:
            readings.record_pass_volume(spot_id, req.pass_volume)
            accepted.append("pass_volume")
        if req.parking_occupancy_pct is not None or req.occupied_slots is not None:
            readings.record_parking(
                spot_id,
                occupancy_pct=req.parking_occupancy_pct,
                occupied_slots=req.occupied_slots,
            )
            accepted.append("parking")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        score = await asyncio.to_thread(engine.recompute, spot_id)
    except InvalidSpot as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MalformedSnapshot as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logging.error(f"Recompute after signal push failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="혼잡도 재계산 중 오류가 발생했습니다")

    invalidate_reroute_cache()
    return SignalResponse(spot_id=spot_id, accepted=accepted, score=score.to_dict())
