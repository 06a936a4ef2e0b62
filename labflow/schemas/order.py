"""
Pydantic schemas for Order operations
"""

from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import date as date_type, datetime

from labflow.statuses import parse_status

# FDI notation, permanent dentition
VALID_TEETH = frozenset(
    f"{quadrant}{position}" for quadrant in range(1, 5) for position in range(1, 9)
)

WORK_TYPES = [
    "faceta", "onlay", "enceramento", "coping",
    "provisorio_oco", "pontico", "sobre_dente", "sobre_implante",
]

IMPLANT_TYPES = [
    "pilar_gt", "he_4.1_sem_link", "he_4.1_com_link", "mini_pilar",
    "munhao_universal_3.3x4", "munhao_universal_3.3x6",
    "munhao_universal_4.5x4", "munhao_universal_4.5x6", "pilar_cm_ws",
]

TOOTH_MATERIALS = ["dissilicato", "zirconia", "pmma", "modelo_3d"]


def _validate_tooth(value: str) -> str:
    value = str(value).strip()
    if value not in VALID_TEETH:
        raise ValueError(f"Invalid tooth code: {value}")
    return value


def _validate_required_text(value):
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Name must not be blank")
    return value


class ToothConfig(BaseModel):
    """Per-tooth work specification"""
    tooth_number: str = Field(..., description="FDI tooth code, e.g. 11")
    work_type: str = Field(..., description="Type of work for this tooth")
    implant_type: Optional[str] = Field(None, description="Implant component, for work over implants")
    material: Optional[str] = Field(None, description="Material for this tooth")

    @validator('tooth_number')
    def validate_tooth_number(cls, v):
        return _validate_tooth(v)

    @validator('work_type')
    def validate_work_type(cls, v):
        if v not in WORK_TYPES:
            raise ValueError(f'Work type must be one of: {", ".join(WORK_TYPES)}')
        return v

    @validator('implant_type')
    def validate_implant_type(cls, v):
        if v is not None and v not in IMPLANT_TYPES:
            raise ValueError(f'Implant type must be one of: {", ".join(IMPLANT_TYPES)}')
        return v

    @validator('material')
    def validate_material(cls, v):
        if v is not None and v not in TOOTH_MATERIALS:
            raise ValueError(f'Material must be one of: {", ".join(TOOTH_MATERIALS)}')
        return v


class OrderCreate(BaseModel):
    """Schema for an order submitted through the public intake form"""
    patient_name: str = Field(..., min_length=1, max_length=200, description="Patient name")
    patient_id: Optional[str] = Field(None, max_length=100)
    dentist_name: str = Field(..., min_length=1, max_length=200, description="Requesting dentist")
    clinic_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = Field(None)
    date: Optional[date_type] = Field(None, description="Request date")
    selected_teeth: list[str] = Field(..., description="FDI tooth codes, in selection order")
    material: Optional[str] = Field(None, max_length=100)
    color: Optional[str] = Field(None, max_length=50, description="Shade, e.g. A2")
    prosthesis_type: Optional[str] = Field(None, max_length=100)
    delivery_deadline: Optional[date_type] = Field(None)
    additional_notes: Optional[str] = Field(None)
    tooth_configs: Optional[list[ToothConfig]] = Field(None, description="Per-tooth work overrides")

    @validator('patient_name', 'dentist_name')
    def validate_names(cls, v):
        return _validate_required_text(v)

    @validator('selected_teeth')
    def validate_selected_teeth(cls, v):
        teeth = []
        for tooth in v:
            tooth = _validate_tooth(tooth)
            if tooth not in teeth:
                teeth.append(tooth)
        if not teeth:
            raise ValueError('At least one tooth must be selected')
        return teeth

    @validator('tooth_configs')
    def validate_tooth_configs(cls, v, values):
        if not v:
            return v
        selected = values.get('selected_teeth') or []
        missing = [config.tooth_number for config in v if config.tooth_number not in selected]
        if missing:
            raise ValueError(f'Configured teeth are not selected: {", ".join(missing)}')
        return v


class OrderUpdate(BaseModel):
    """Schema for admin edits of descriptive and technical fields"""
    patient_name: Optional[str] = Field(None, min_length=1, max_length=200)
    patient_id: Optional[str] = Field(None, max_length=100)
    dentist_name: Optional[str] = Field(None, min_length=1, max_length=200)
    clinic_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = Field(None)
    material: Optional[str] = Field(None, max_length=100)
    color: Optional[str] = Field(None, max_length=50)
    prosthesis_type: Optional[str] = Field(None, max_length=100)
    delivery_deadline: Optional[date_type] = Field(None)
    additional_notes: Optional[str] = Field(None)

    @validator('patient_name', 'dentist_name')
    def validate_names(cls, v):
        return _validate_required_text(v)


class StatusChange(BaseModel):
    """Request to move an order to a new status"""
    status: str = Field(..., description="Target status")

    @validator('status')
    def validate_status(cls, v):
        return parse_status(v).value


class OrderAssignment(BaseModel):
    user_id: Optional[int] = Field(None, description="User to assign, or null to clear")


class DeadlineUpdate(BaseModel):
    delivery_deadline: Optional[date_type] = Field(None)


class OrderResponse(BaseModel):
    """Schema for order responses"""
    id: str
    order_number: str
    patient_name: str
    patient_id: Optional[str]
    dentist_name: str
    clinic_name: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    date: Optional[date_type]
    selected_teeth: list[str]
    material: Optional[str]
    color: Optional[str]
    prosthesis_type: Optional[str]
    delivery_deadline: Optional[date_type]
    smile_photo_url: Optional[str]
    scan_file_url: Optional[str]
    additional_notes: Optional[str]
    status: str
    status_label: str
    assigned_to: Optional[int]
    assigned_username: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicOrderResponse(BaseModel):
    """Limited order view for the public lab board"""
    id: str
    order_number: str
    patient_name: str
    dentist_name: str
    clinic_name: Optional[str]
    status: str
    status_label: str
    date: Optional[date_type]
    delivery_deadline: Optional[date_type]
    material: Optional[str]
    color: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Schema for paginated order list responses"""
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    status_counts: dict[str, int]


class StatusHistoryEntryResponse(BaseModel):
    id: int
    order_id: str
    old_status: Optional[str]
    new_status: str
    changed_by: Optional[int]
    changed_at: datetime
    duration_seconds: Optional[int]
    duration_formatted: str


class OrderHistoryResponse(BaseModel):
    order_id: str
    entries: list[StatusHistoryEntryResponse]
    total_production_seconds: Optional[int]
    total_production_formatted: str


class FileUploadResponse(BaseModel):
    order_id: str
    kind: str
    path: str


class SignedUrlResponse(BaseModel):
    path: str
    signed_url: str
    expires_in: int
