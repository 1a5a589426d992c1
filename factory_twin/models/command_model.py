"""
操作指令模型
定义操作员 → 仿真核心方向的指令载荷

指令:
- override_part: 人工放行被传感器拦停的零件
- get_part_history: 查询零件履历
- search_part: 按零件ID子串搜索
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OverridePartCommand(BaseModel):
    """
    人工放行指令

    from/to/failedSensorId 均可省略，省略时从零件拦停记录推导
    """
    model_config = ConfigDict(populate_by_name=True)

    command: Literal["override_part"] = "override_part"
    part_id: str = Field(alias="partId", min_length=1, description="零件ID")
    from_station_id: Optional[str] = Field(
        default=None,
        alias="fromStationId",
        description="拦停所在传送带起点"
    )
    to_station_id: Optional[str] = Field(
        default=None,
        alias="toStationId",
        description="拦停所在传送带终点"
    )
    failed_sensor_id: Optional[str] = Field(
        default=None,
        alias="failedSensorId",
        description="判定失败的传感器"
    )


class GetPartHistoryCommand(BaseModel):
    """零件履历查询指令"""
    model_config = ConfigDict(populate_by_name=True)

    command: Literal["get_part_history"] = "get_part_history"
    part_id: str = Field(alias="partId", min_length=1, description="零件ID")


class SearchPartCommand(BaseModel):
    """零件搜索指令（大小写不敏感的子串匹配）"""

    command: Literal["search_part"] = "search_part"
    query: str = Field(default="", description="搜索关键字")


OperatorCommand = Union[OverridePartCommand, GetPartHistoryCommand, SearchPartCommand]


COMMAND_MODELS = {
    "override_part": OverridePartCommand,
    "get_part_history": GetPartHistoryCommand,
    "search_part": SearchPartCommand,
}
