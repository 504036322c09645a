"""Project/문서 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from decimal import Decimal
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

from buildlink.schemas.milestone import MilestoneOut


class ProjectCreate(BaseModel):
    consultation_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    location: str = Field(min_length=1, max_length=200)
    budget_min: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    budget_max: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)

    @model_validator(mode="after")
    def check_budget_range(self):
        if self.budget_min is not None and self.budget_max is not None and self.budget_min > self.budget_max:
            raise ValueError("budget_min must not exceed budget_max")
        return self


class DocumentSlotUpdate(BaseModel):
    url: str = Field(min_length=1, max_length=500)


class ProjectDocumentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    file_url: str = Field(min_length=1, max_length=500)


class ProjectDocumentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    file_url: str = Field(min_length=1, max_length=500)


class ProjectDocumentOut(BaseModel):
    document_id: int
    project_id: int
    title: str
    file_url: str
    uploaded_by: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DisputeSummary(BaseModel):
    dispute_id: int
    milestone_id: Optional[int] = None
    raised_by: int
    reason: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProjectOut(BaseModel):
    project_id: int
    consultation_id: Optional[int] = None
    client_id: int
    company_id: int
    title: str
    description: Optional[str] = None
    location: str
    budget_min: Optional[Decimal] = None
    budget_max: Optional[Decimal] = None
    status: str
    preview_image_url: Optional[str] = None
    architectural_drawing_url: Optional[str] = None
    structural_drawing_url: Optional[str] = None
    mechanical_drawing_url: Optional[str] = None
    electrical_drawing_url: Optional[str] = None
    milestones: List[MilestoneOut] = []
    extra_documents: List[ProjectDocumentOut] = []
    disputes: List[DisputeSummary] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProjectListItem(BaseModel):
    project_id: int
    client_id: int
    company_id: int
    title: str
    location: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
