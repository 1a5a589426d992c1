"""
配置管理接口
提供全局配置的获取与验证功能

API端点:
- GET /api/config/default: 获取默认配置
- POST /api/config/validate: 验证配置有效性
- GET /api/config/layout: 获取默认工厂布局
- GET /api/config/station-types: 获取工位类型及指标定义
"""

import logging
from typing import List

from fastapi import APIRouter
from pydantic import BaseModel, ValidationError

from factory_twin.api.simulation import APIResponse
from factory_twin.models.config_model import SimulatorConfig, load_config
from factory_twin.models.enums import StationType, get_station_type_info
from factory_twin.utils.layout_builder import build_factory_layout, get_metric_configs
from factory_twin.utils.validators import check_line_connectivity, validate_layout

logger = logging.getLogger(__name__)

router = APIRouter()


# ============ 响应模型 ============

class ConfigValidationResult(BaseModel):
    """配置验证结果"""
    valid: bool
    errors: List[str] = []
    warnings: List[str] = []


# ============ API端点 ============

@router.get("/default", response_model=APIResponse)
async def get_default_config():
    """
    获取默认配置

    从包内 default_config.yaml 加载，文件不合法时回退到代码默认值
    """
    try:
        config = load_config()
    except (ValidationError, ValueError) as e:
        logger.warning("Default config file is invalid, using built-in defaults: %s", e)
        config = SimulatorConfig()

    return APIResponse(
        success=True,
        message="获取默认配置成功",
        data=config.model_dump(mode="json", exclude={"rework_band"})
    )


@router.post("/validate", response_model=APIResponse)
async def validate_config(config: SimulatorConfig):
    """
    验证配置有效性

    检查内容:
    - 时间范围合法
    - 判定阈值顺序
    - 投放水位与在制上限的关系
    """
    valid, errors, warnings = config.validate_config()
    result = ConfigValidationResult(valid=valid, errors=errors, warnings=warnings)

    return APIResponse(
        success=result.valid,
        message="配置验证通过" if result.valid else "配置存在错误",
        data=result.model_dump()
    )


@router.get("/layout", response_model=APIResponse)
async def get_default_layout():
    """
    获取默认工厂布局

    附带布局验证结果与产线连通性分析
    """
    layout = build_factory_layout()
    valid, errors, warnings = validate_layout(layout)

    return APIResponse(
        success=valid,
        message=f"共 {len(layout.stations)} 个工位、{len(layout.sensors)} 个传感器",
        data={
            "layout": layout.model_dump(mode="json"),
            "validation": ConfigValidationResult(
                valid=valid, errors=errors, warnings=warnings
            ).model_dump(),
            "connectivity": check_line_connectivity(layout),
        }
    )


@router.get("/station-types", response_model=APIResponse)
async def get_station_types():
    """
    获取工位类型列表

    返回每种工位类型的元数据与指标定义，供前端下拉选择
    """
    station_types = []
    for station_type in StationType:
        station_types.append({
            "type": station_type.value,
            **get_station_type_info(station_type),
            "metrics": [m.model_dump() for m in get_metric_configs(station_type)],
        })

    return APIResponse(
        success=True,
        message="获取工位类型成功",
        data=station_types
    )
