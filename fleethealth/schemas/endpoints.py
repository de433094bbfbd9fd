from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from fleethealth.schemas.common import ToolFlags, ToolLags
from fleethealth.services.health import HealthLevel


class EndpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shortname: str
    fullname: Optional[str]
    env: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EndpointListResponse(BaseModel):
    items: list[EndpointResponse]
    total: int
    limit: int
    offset: int


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    shortname: str
    import_date: date
    fullname: Optional[str]
    env: Optional[str]
    server_os: Optional[str]
    os_name: Optional[str]
    os_family: Optional[str]
    os_build_number: Optional[str]
    supported_os: bool
    ip_priv: Optional[str]
    ip_pub: Optional[str]
    user_email: Optional[str]
    possible_fake: bool
    r7_found: bool
    am_found: bool
    df_found: bool
    it_found: bool
    vm_found: bool
    seen_recently: bool
    recent_r7_scan: bool
    recent_am_scan: bool
    recent_df_scan: bool
    recent_it_scan: bool
    r7_lag_days: Optional[int]
    am_lag_days: Optional[int]
    df_lag_days: Optional[int]
    it_lag_days: Optional[int]
    num_criticals: int
    am_last_user: Optional[str]
    needs_am_reboot: bool
    needs_am_attention: bool
    vm_power_state: Optional[str]
    df_id: Optional[str]
    it_id: Optional[str]
    script_result: Optional[str]


class EndpointHistoryResponse(BaseModel):
    endpoint: EndpointResponse
    snapshots: list[SnapshotResponse]


class CalendarDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    level: HealthLevel
    tools: ToolFlags
    recent_scans: ToolFlags
    lag_days: ToolLags
    criticals: int
    seen_recently: bool


class EndpointCalendarResponse(BaseModel):
    endpoint: EndpointResponse
    year: int
    month: int
    days: list[CalendarDayResponse]


class FleetStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_endpoints: int
    latest_import_date: Optional[date]
    latest_snapshot_count: int


class EnvironmentsResponse(BaseModel):
    environments: list[str]


class NewEndpointsResponse(BaseModel):
    import_date: Optional[date]
    count: int
    endpoints: list[EndpointResponse]


class MissingEndpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    endpoint: EndpointResponse
    last_seen_date: Optional[date]
    days_since_last_seen: Optional[int]


class MissingEndpointsResponse(BaseModel):
    latest_import_date: Optional[date]
    count: int
    endpoints: list[MissingEndpointResponse]


class TrendDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: date
    total_endpoints: int
    active_endpoints: int
    fully: int
    partially: int
    unhealthy: int
    inactive: int
    new_endpoints: int
    existing_endpoints: int
    health_rate: float
    tool_counts: dict[str, int]


class TrendSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_endpoints_now: int
    total_endpoints_start: int
    health_rate_change: float
    new_endpoints_discovered: int
    endpoints_gained_health: int
    endpoints_lost_health: int


class HealthTrendResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: Optional[date]
    end: Optional[date]
    days: int
    trend: list[TrendDayResponse]
    summary: TrendSummaryResponse


class CategoryEndpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shortname: str
    fullname: Optional[str]
    env: Optional[str]
    level: HealthLevel
    level_label: str
    tools_reporting: list[str]
    health_tools_count: int
    tool_status: ToolFlags
    lag_days: ToolLags


class HealthCategoryResponse(BaseModel):
    day: date
    category: str
    count: int
    endpoints: list[CategoryEndpointResponse]
