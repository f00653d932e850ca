# -*- coding: utf-8 -*-
from typing import Optional

from fastapi import APIRouter, Query
from api.dependencies import registry
from api.schemas import NearestSpotItem, NearestSpotResponse, SpotItem

router = APIRouter()


@router.get(
    "/spots",
    summary="관광 스팟 목록 조회",
    description="모니터링 중인 스팟 목록(좌표, 카테고리, 운영 시간, 주차 면수)을 반환합니다. "
    "category로 필터링할 수 있습니다.",
    response_description="스팟 목록",
)
async def get_spots(category: Optional[str] = Query(None, description="카테고리 (예: Gardens)")):
    """스팟 참조 데이터를 반환한다."""
    directory = registry.get_engine().directory
    spots = directory.list_spots_by_category(category) if category else directory.spots

    result = []
    for s in spots:
        facility = directory.parking_for_spot(s.id)
        result.append(SpotItem(
            id=s.id,
            name=s.name,
            local_name=s.local_name,
            category=s.category,
            lat=s.latitude,
            lng=s.longitude,
            indoor=s.indoor,
            open_time=s.open_time,
            close_time=s.close_time,
            region=s.region,
            parking_slots=facility.total_slots if facility else None,
        ))
    return result


@router.get(
    "/nearest-spot",
    response_model=NearestSpotResponse,
    summary="GPS 기반 최근접 스팟 조회",
    description="주어진 위도/경도 좌표에서 가장 가까운 스팟을 "
    "Haversine 공식으로 계산하여 반환합니다. 거리(km) 포함.",
    response_description="최근접 스팟 (이름, 카테고리, 거리, 좌표)",
)
async def get_nearest_spot(
    lat: float = Query(..., description="위도 (예: 11.4102)"),
    lng: float = Query(..., description="경도 (예: 76.6950)"),
    limit: int = Query(3, ge=1, le=20),
):
    """Return the nearest spots to the given coordinates."""
    directory = registry.get_engine().directory
    nearest = directory.nearest_spots(lat, lng, limit=limit)

    return NearestSpotResponse(
        spots=[
            NearestSpotItem(
                id=spot.id,
                name=spot.name,
                category=spot.category,
                distance_km=round(dist, 2),
                lat=spot.latitude,
                lng=spot.longitude,
            )
            for spot, dist in nearest
        ]
    )
