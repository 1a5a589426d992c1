"""
仿真控制接口
提供仿真的启动、推进、停止、状态查询等功能

API端点:
- POST /api/simulation/start: 创建并启动仿真
- POST /api/simulation/{sim_id}/advance: 推进仿真时钟
- POST /api/simulation/{sim_id}/stop: 停止仿真
- GET /api/simulation/{sim_id}/status: 获取仿真状态
- GET /api/simulation/list: 列出所有仿真
- DELETE /api/simulation/clear: 清除所有仿真
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from factory_twin.core.simulation_engine import SimulationEngine
from factory_twin.models.config_model import SimulatorConfig
from factory_twin.models.enums import SimulationStatus
from factory_twin.models.result_model import SimulationSummaryModel
from factory_twin.utils.layout_builder import AREA_DEFS, build_factory_layout
from factory_twin.utils.validators import validate_simulation_request

logger = logging.getLogger(__name__)

router = APIRouter()


# ============ 数据模型 ============

class StartSimulationRequest(BaseModel):
    """仿真启动请求"""
    config: SimulatorConfig = Field(default_factory=SimulatorConfig, description="全局配置")
    area_count: int = Field(
        default=len(AREA_DEFS),
        ge=1,
        le=len(AREA_DEFS),
        description="使用的区域数量（按默认区域顺序截取）"
    )
    spawn_enabled: bool = Field(default=True, description="是否自动投放零件")
    advance_ms: float = Field(default=0, ge=0, description="启动后立即推进的时长（毫秒）")


class AdvanceRequest(BaseModel):
    """时钟推进请求"""
    duration_ms: float = Field(gt=0, description="推进时长（毫秒）")


class APIResponse(BaseModel):
    """统一API响应格式"""
    success: bool
    message: str
    data: Optional[Any] = None


# ============ 仿真实例存储 ============

# 内存存储，仿真状态不做持久化
simulations: Dict[str, SimulationEngine] = {}


def get_engine(sim_id: str) -> Optional[SimulationEngine]:
    """按ID获取仿真实例"""
    return simulations.get(sim_id)


def not_found(sim_id: str) -> APIResponse:
    return APIResponse(success=False, message=f"仿真 {sim_id} 不存在")


def summary_payload(engine: SimulationEngine) -> dict:
    return SimulationSummaryModel.model_validate(engine.summary().to_dict()).model_dump()


# ============ API端点 ============

@router.post("/start", response_model=APIResponse)
async def start_simulation(request: StartSimulationRequest):
    """
    创建并启动仿真

    请求体:
    - config: 全局配置
    - area_count: 使用的区域数量
    - spawn_enabled: 是否自动投放零件
    - advance_ms: 启动后立即推进的时长

    响应:
    - data: 仿真摘要（含 sim_id）
    """
    layout = build_factory_layout(area_defs=AREA_DEFS[:request.area_count])

    valid, errors, warnings = validate_simulation_request(request.config, layout)
    if not valid:
        return APIResponse(
            success=False,
            message="仿真请求验证失败",
            data={"errors": errors, "warnings": warnings}
        )

    engine = SimulationEngine(
        request.config,
        layout,
        spawn_enabled=request.spawn_enabled
    )
    started, msg = engine.start()
    if not started:
        return APIResponse(success=False, message=msg)

    simulations[engine.sim_id] = engine
    engine.advance(request.advance_ms)

    return APIResponse(
        success=True,
        message=f"仿真 {engine.sim_id} 已启动",
        data=summary_payload(engine)
    )


@router.post("/{sim_id}/advance", response_model=APIResponse)
async def advance_simulation(sim_id: str, request: AdvanceRequest):
    """
    推进仿真时钟

    仅对运行中的仿真生效
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)
    if engine.status != SimulationStatus.RUNNING:
        return APIResponse(success=False, message="仿真未在运行中")

    now = engine.advance(request.duration_ms)
    return APIResponse(
        success=True,
        message=f"仿真时钟已推进到 {now:.0f} ms",
        data=summary_payload(engine)
    )


@router.post("/{sim_id}/stop", response_model=APIResponse)
async def stop_simulation(sim_id: str):
    """
    停止仿真

    销毁所有在制零件代理，保留状态供查询
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)
    if engine.status != SimulationStatus.RUNNING:
        return APIResponse(success=False, message="仿真未在运行中")

    engine.shutdown()
    return APIResponse(
        success=True,
        message="仿真已停止",
        data=summary_payload(engine)
    )


@router.get("/{sim_id}/status", response_model=APIResponse)
async def get_simulation_status(sim_id: str):
    """
    获取仿真状态
    """
    engine = get_engine(sim_id)
    if engine is None:
        return not_found(sim_id)

    return APIResponse(
        success=True,
        message=f"仿真状态: {engine.status.value}",
        data=summary_payload(engine)
    )


@router.get("/list", response_model=APIResponse)
async def list_simulations():
    """
    列出所有仿真记录

    按创建时间倒序返回概要信息
    """
    summaries = []
    for sim_id, engine in simulations.items():
        summaries.append({
            "sim_id": sim_id,
            "status": engine.status.value,
            "sim_time_ms": engine.now_ms,
            "created_at": engine.created_at,
            "stopped_at": engine.stopped_at,
        })

    summaries.sort(key=lambda x: x["created_at"], reverse=True)

    return APIResponse(
        success=True,
        message=f"共 {len(summaries)} 条仿真记录",
        data=summaries
    )


@router.delete("/clear", response_model=APIResponse)
async def clear_simulations():
    """
    清除所有仿真记录

    运行中的仿真会先停止
    """
    count = len(simulations)
    for engine in simulations.values():
        engine.shutdown()
    simulations.clear()
    logger.info("Cleared %d simulations", count)

    return APIResponse(
        success=True,
        message=f"已清除 {count} 条仿真记录"
    )
