"""
零件指令接口
提供零件履历查询、搜索与人工放行功能

API端点:
- GET /api/parts/{sim_id}/search: 按零件ID子串搜索
- GET /api/parts/{sim_id}/history/{part_id}: 获取零件履历
- POST /api/parts/{sim_id}/override: 人工放行被拦停的零件
- POST /api/parts/{sim_id}/command: 执行原始JSON指令
"""

from typing import Any, Dict

from fastapi import APIRouter, Query

from factory_twin.api.simulation import APIResponse, get_engine, not_found
from factory_twin.models.command_model import OverridePartCommand
from factory_twin.utils.message_codec import parse_command

router = APIRouter()


@router.get("/{sim_id}/search", response_model=APIResponse)
async def search_parts(
    sim_id: str,
    query: str = Query(default="", description="零件ID子串（不区分大小写）")
):
    """
    搜索零件

    返回数量受 search_limit 限制
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    parts = engine.search_part(query)
    return APIResponse(
        success=True,
        message=f"找到 {len(parts)} 个零件",
        data=[p.to_dict() for p in parts]
    )


@router.get("/{sim_id}/history/{part_id}", response_model=APIResponse)
async def get_part_history(sim_id: str, part_id: str):
    """
    获取零件履历

    包含工位历史、传感器事件与拦停记录
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    part = engine.get_part_history(part_id)
    if part is None:
        return APIResponse(success=False, message=f"零件 {part_id} 不存在")

    return APIResponse(
        success=True,
        message="获取零件履历成功",
        data=part.to_dict()
    )


@router.post("/{sim_id}/override", response_model=APIResponse)
async def override_part(sim_id: str, command: OverridePartCommand):
    """
    人工放行

    仅对被传感器判定拦停（已报废且有拦停记录）的零件生效，
    放行后零件沿原传送带以标准运输时长继续运行
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    part = engine.override_part(command)
    if part is None:
        return APIResponse(
            success=False,
            message=f"零件 {command.part_id} 不满足放行条件"
        )

    return APIResponse(
        success=True,
        message=f"零件 {command.part_id} 已放行",
        data=part.to_dict()
    )


@router.post("/{sim_id}/command", response_model=APIResponse)
async def execute_command(sim_id: str, body: Dict[str, Any]):
    """
    执行原始指令

    请求体为 {"command": "override_part" | "get_part_history" | "search_part", ...}
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    command = parse_command(body)
    if command is None:
        return APIResponse(success=False, message="指令格式不合法")

    result = engine.execute(command)
    return APIResponse(
        success=result is not None,
        message="指令已执行" if result is not None else "指令未产生结果",
        data=result
    )
