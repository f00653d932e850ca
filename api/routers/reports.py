# -*- coding: utf-8 -*-
"""
Community Report API Router
===========================
Stores visitor crowd reports (severity 1-5) and exposes per-spot aggregates.
The report score feeds the congestion model on the next refresh.
"""
import asyncio
import logging
import sqlite3

from fastapi import APIRouter, HTTPException

from api.dependencies import registry
from api.schemas import ReportRequest, ReportResponse, ReportStatsResponse, SpotReportStats

router = APIRouter()


@router.post(
    "/reports",
    response_model=ReportResponse,
    summary="혼잡 제보 제출",
    description="방문객이 스팟의 혼잡 정도(1: 한산 ~ 5: 매우 혼잡)를 제보합니다. "
    "최근 제보는 다음 갱신 주기부터 혼잡도 점수에 반영됩니다.",
    response_description="저장된 제보 ID",
)
async def submit_report(req: ReportRequest):
    """Store a visitor crowd report."""
    engine = registry.get_engine()
    if req.spot_id not in engine.directory:
        raise HTTPException(status_code=404, detail=f"스팟을 찾을 수 없습니다: {req.spot_id}")

    store = registry.get_reports()
    try:
        report_id = await asyncio.to_thread(store.add_report, req.spot_id, req.severity, req.comment)
    except sqlite3.Error as e:
        logging.error(f"Report insert failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"제보 저장 실패: {str(e)}")
    return ReportResponse(id=report_id, message="제보가 저장되었습니다")


@router.get(
    "/reports/stats",
    response_model=ReportStatsResponse,
    summary="혼잡 제보 통계 조회",
    description="최근 제보 창(window) 안의 스팟별 제보 수, 평균 심각도, 제보 점수를 반환합니다.",
    response_description="전체 및 스팟별 제보 통계",
)
async def get_report_stats():
    """Get aggregated report statistics."""
    store = registry.get_reports()
    try:
        stats = await asyncio.to_thread(store.stats)
    except sqlite3.Error as e:
        logging.error(f"Report stats failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"통계 조회 실패: {str(e)}")

    per_spot = sorted(
        (
            SpotReportStats(spot_id=spot_id, **values)
            for spot_id, values in stats.items()
        ),
        key=lambda s: s.count,
        reverse=True,
    )
    return ReportStatsResponse(
        total_count=sum(s.count for s in per_spot),
        window_minutes=store.window_minutes,
        per_spot=per_spot,
    )
