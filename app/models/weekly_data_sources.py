from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from typing import Dict, List, Optional
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel

from .raw_platform_record import Platform, PlatformRow


class SourceStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETE = "complete"


class SourceOrigin(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class DataSourceStatus(BaseModel):
    status: SourceStatus = SourceStatus.PENDING
    origin: SourceOrigin = SourceOrigin.MANUAL
    imported_at: Optional[datetime] = None
    records_count: int = 0
    drivers_count: int = 0
    last_error: Optional[str] = None


def empty_sources() -> Dict[str, dict]:
    return {platform.value: DataSourceStatus().model_dump(mode="json") for platform in Platform}


class WeeklyDataSources(SQLModel, table=True):
    __tablename__ = "weekly_data_sources"
    week_id: str = Field(primary_key=True)
    week_start: date
    week_end: date
    # platform -> DataSourceStatus serializado
    sources: Dict[str, dict] = Field(
        default_factory=empty_sources, sa_column=Column(JSON, nullable=False))
    is_complete: bool = Field(default=False)
    notes: Optional[str] = None
    created_at: datetime = Field(
        default_factory=datetime.utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": datetime.utcnow}
    )

    def source(self, platform: Platform) -> DataSourceStatus:
        return DataSourceStatus(**(self.sources or {}).get(platform.value, {}))


class WeeklyDataSourcesCreate(SQLModel):
    week_id: str
    notes: Optional[str] = None


class PlatformImport(SQLModel):
    origin: SourceOrigin = SourceOrigin.MANUAL
    rows: List[PlatformRow]


class WeekStats(BaseModel):
    week_id: str
    total_drivers: int
    complete_sources: int
    pending_sources: int
    total_sources: int
    completion_percentage: float
