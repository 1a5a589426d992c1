"""
工厂布局模型
定义工位、传感器、产线与区域的静态配置

模型:
- StationConfig: 单个工位配置
- SensorConfig: 传送带上的传感器配置
- LineConfig: 产线（有序工位路线）
- AreaConfig: 区域（包含多条产线）
- StationMetricConfig: 工位指标定义
- FactoryLayout: 完整布局
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from factory_twin.models.enums import SensorType, StationType


class StationPosition(BaseModel):
    """工位在平面图上的坐标"""
    x: float = 0
    y: float = 0


class StationConfig(BaseModel):
    """
    工位配置模型

    Attributes:
        station_id: 唯一工位ID
        name: 显示名称
        area: 所属区域ID
        line: 所属产线ID
        station_type: 工位类型
        next_stations: 下游工位ID列表（可多个并行分支）
        rework_target: 返工目标工位ID（仅测量工位）
        processing_time: 加工时间范围 [min, max]（毫秒）
    """

    station_id: str = Field(description="唯一工位ID")
    display_id: str = Field(default="", description="显示编号")
    name: str = Field(default="", description="工位名称")
    area: str = Field(description="区域ID")
    line: str = Field(description="产线ID")
    station_type: StationType = Field(description="工位类型")
    position: StationPosition = Field(default_factory=StationPosition)
    next_stations: List[str] = Field(
        default_factory=list,
        description="下游工位ID列表"
    )
    rework_target: Optional[str] = Field(
        default=None,
        description="返工目标工位ID"
    )
    processing_time: Tuple[int, int] = Field(
        default=(1000, 1000),
        description="加工时间范围（毫秒）"
    )

    @property
    def is_measure(self) -> bool:
        """是否为测量工位（唯一会判定 nok/rework 的类型）"""
        return self.station_type == StationType.MEASURE


class SensorConfig(BaseModel):
    """
    传感器配置模型

    Attributes:
        sensor_id: 唯一传感器ID
        sensor_type: 传感器类型
        from_station_id / to_station_id: 所在传送带段
        position_on_belt: 沿传送带的位置（0-1）
        fail_probability: 负面判定概率（0-1）
    """

    sensor_id: str = Field(description="唯一传感器ID")
    display_id: str = Field(default="", description="显示编号")
    sensor_type: SensorType = Field(description="传感器类型")
    from_station_id: str = Field(description="起点工位")
    to_station_id: str = Field(description="终点工位")
    position_on_belt: float = Field(
        default=0.5,
        ge=0,
        le=1,
        description="沿传送带的位置（0-1）"
    )
    fail_probability: float = Field(
        default=0.0,
        ge=0,
        le=1,
        description="负面判定概率"
    )

    @property
    def belt(self) -> Tuple[str, str]:
        """所在传送带段 (from, to)"""
        return self.from_station_id, self.to_station_id


class LineConfig(BaseModel):
    """产线配置（有序工位路线，第一个为入口）"""
    line_id: str
    area: str
    name: str = ""
    stations: List[str] = Field(default_factory=list)


class AreaConfig(BaseModel):
    """区域配置"""
    area_id: str
    name: str = ""
    lines: List[LineConfig] = Field(default_factory=list)


class StationMetricConfig(BaseModel):
    """
    工位指标定义

    发布值 = base_value + (u - 0.5) × variance，u ~ U(0,1)
    """
    metric_id: str
    label: str = ""
    unit: str = ""
    nominal_min: float = 0
    nominal_max: float = 0
    warning_min: float = 0
    warning_max: float = 0
    base_value: float = 0
    variance: float = 0


class FactoryLayout(BaseModel):
    """完整工厂布局"""
    areas: List[AreaConfig] = Field(default_factory=list)
    stations: Dict[str, StationConfig] = Field(default_factory=dict)
    sensors: List[SensorConfig] = Field(default_factory=list)

    def get_lines(self) -> List[LineConfig]:
        """获取所有产线（按区域顺序展开）"""
        return [line for area in self.areas for line in area.lines]

    def get_line(self, line_id: str) -> Optional[LineConfig]:
        """按ID获取产线"""
        for line in self.get_lines():
            if line.line_id == line_id:
                return line
        return None

    def get_sensor(self, sensor_id: str) -> Optional[SensorConfig]:
        """按ID获取传感器"""
        for sensor in self.sensors:
            if sensor.sensor_id == sensor_id:
                return sensor
        return None
