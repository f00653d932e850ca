import asyncio
import logging

from fastapi import APIRouter, HTTPException
from api.schemas import RerouteRequest, RerouteResponse
from api.dependencies import registry
from api.cache import reroute_cache
from crowdshift.exceptions import InvalidSpot, MalformedSnapshot

router = APIRouter()


@router.post(
    "/reroute",
    response_model=RerouteResponse,
    summary="혼잡 우회 판단",
    description="목적지 스팟의 현재 혼잡도가 ORANGE 이상이면 같은 카테고리에서 "
    "충분히 한산한(점수 50 미만) 대안 스팟을 점수, 거리 순으로 추천합니다. "
    "우회가 필요하지만 대안이 없으면 outcome=NO_ALTERNATIVE로 응답합니다.",
    response_description="우회 여부, 결과 유형, 대안 스팟 목록(예상 주차 가능 대수, 거리 차이)",
)
async def reroute(req: RerouteRequest):
    engine = registry.get_engine()
    crowd_router = registry.get_router()

    user_location = None
    if req.lat is not None and req.lng is not None:
        user_location = (req.lat, req.lng)

    # 캐시 조회
    key = reroute_cache.make_key(req.destination, user_location, req.limit)
    cached = reroute_cache.get(key)
    if cached is not None:
        return cached

    try:
        decision = await asyncio.to_thread(
            crowd_router.check_reroute,
            req.destination,
            user_location=user_location,
            limit=req.limit,
        )
    except InvalidSpot as e:
        raise HTTPException(status_code=404, detail=f"목적지를 찾을 수 없습니다: {e.spot_id}")
    except MalformedSnapshot as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logging.error(f"Reroute failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="우회 판단 중 오류가 발생했습니다")

    response = RerouteResponse(**decision.to_dict(), refresh_interval=engine.refresh_interval)

    # 캐시에 저장
    reroute_cache.set(key, response)

    return response
