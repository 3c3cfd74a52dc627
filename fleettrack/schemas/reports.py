from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from .assignments import AssignmentResponse, RemovalResponse, ReplacementResponse
from .renewals import RenewalResponse


class InventorySummary(BaseModel):
    total_devices: int
    assigned_devices: int
    available_devices: int


class FleetSummary(BaseModel):
    total_clients: int
    total_vehicles: int


class MonthSummary(BaseModel):
    installations: int
    removals: int


class AlertSummary(BaseModel):
    upcoming_renewals: int
    pending_tasks: int


class DashboardResponse(BaseModel):
    inventory: InventorySummary
    fleet: FleetSummary
    this_month: MonthSummary
    alerts: AlertSummary


class TechnicianPerformance(BaseModel):
    name: Optional[str] = None
    installations: int
    locations_count: int


class InstallationMetricsResponse(BaseModel):
    by_month: Dict[str, int]
    by_location: Dict[str, int]
    by_platform: Dict[str, int]
    total: int


class ReportPeriod(BaseModel):
    start: datetime
    end: datetime


class ActivitySummary(BaseModel):
    installations: int
    transfers: int
    removals: int
    replacements: int
    renewals: int


class ActivityDetails(BaseModel):
    installations: List[AssignmentResponse]
    transfers: List[AssignmentResponse]
    removals: List[RemovalResponse]
    replacements: List[ReplacementResponse]
    renewals: List[RenewalResponse]


class ActivityReportResponse(BaseModel):
    period: ReportPeriod
    summary: ActivitySummary
    details: ActivityDetails


class PlatformMasterlistResponse(BaseModel):
    total: int
    platforms: List[str]
    data: Dict[str, List[AssignmentResponse]]
