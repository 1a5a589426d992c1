"""
状态查询接口
提供状态快照、工厂统计、指标历史与外部消息接入

API端点:
- GET /api/state/{sim_id}/snapshot: 完整状态快照
- GET /api/state/{sim_id}/stats: 工厂统计（KPI）
- GET /api/state/{sim_id}/stations/{station_id}: 单个工位状态
- GET /api/state/{sim_id}/parts: 按状态筛选零件
- GET /api/state/{sim_id}/metrics/{station_id}/{metric_id}: 指标历史
- POST /api/state/{sim_id}/ingest: 接入外部主题消息（传输适配器入口）
- GET /api/state/{sim_id}/messages: 近期事件的线上编码
"""

from dataclasses import asdict
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from factory_twin.api.simulation import APIResponse, get_engine, not_found
from factory_twin.models.enums import PartStatus

router = APIRouter()


class IngestRequest(BaseModel):
    """外部消息"""
    topic: str = Field(description="主题，如 factory/{area}/{line}/{stationId}/part/enter")
    payload: Union[Dict[str, Any], str] = Field(description="JSON载荷（对象或字符串）")


@router.get("/{sim_id}/snapshot", response_model=APIResponse)
async def get_snapshot(sim_id: str):
    """
    获取完整状态快照

    包含零件、工位、传感器与布局，用于前端连接或重连时初始化
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    return APIResponse(
        success=True,
        message="获取快照成功",
        data=engine.snapshot()
    )


@router.get("/{sim_id}/stats", response_model=APIResponse)
async def get_stats(sim_id: str):
    """
    获取工厂统计

    包括在制/完成/报废数量、平均节拍、返工率、产出速率和工位一次通过率
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    return APIResponse(
        success=True,
        message="获取统计成功",
        data=engine.stats().to_dict()
    )


@router.get("/{sim_id}/stations/{station_id}", response_model=APIResponse)
async def get_station(sim_id: str, station_id: str):
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    station = engine.tracker.get_station(station_id)
    if station is None:
        return APIResponse(success=False, message=f"工位 {station_id} 不存在")

    return APIResponse(
        success=True,
        message="获取工位状态成功",
        data=station.to_dict()
    )


@router.get("/{sim_id}/parts", response_model=APIResponse)
async def list_parts(
    sim_id: str,
    status: Optional[PartStatus] = Query(default=None, description="零件状态")
):
    """
    列出零件

    不指定状态时返回全部零件
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    if status is None:
        parts = list(engine.tracker.parts.values())
    else:
        parts = engine.tracker.get_parts_by_status(status)

    return APIResponse(
        success=True,
        message=f"共 {len(parts)} 个零件",
        data=[p.to_dict() for p in parts]
    )


@router.get("/{sim_id}/metrics/{station_id}/{metric_id}", response_model=APIResponse)
async def get_metric_history(sim_id: str, station_id: str, metric_id: str):
    """
    获取工位指标历史

    按到达顺序返回环形缓冲中的样本
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    samples = engine.get_metric_history(station_id, metric_id)
    return APIResponse(
        success=True,
        message=f"共 {len(samples)} 个样本",
        data=[asdict(s) for s in samples]
    )


@router.post("/{sim_id}/ingest", response_model=APIResponse)
async def ingest_message(sim_id: str, message: IngestRequest):
    """
    接入外部消息

    消息解码后经事件总线交给状态跟踪器归约，
    data.accepted 表示事件是否被接受（重复、乱序越界等会被拒绝）
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    accepted = engine.ingest(message.topic, message.payload)
    if accepted is None:
        return APIResponse(success=False, message="消息格式不合法")

    return APIResponse(
        success=True,
        message="事件已接受" if accepted else "事件被拒绝",
        data={"accepted": accepted}
    )


@router.get("/{sim_id}/messages", response_model=APIResponse)
async def get_recent_messages(
    sim_id: str,
    limit: int = Query(default=100, ge=1, le=10000, description="取事件日志末尾的事件数")
):
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    messages = engine.recent_messages(limit)
    return APIResponse(
        success=True,
        message=f"共 {len(messages)} 条消息",
        data=[{"topic": topic, "payload": payload} for topic, payload in messages]
    )
