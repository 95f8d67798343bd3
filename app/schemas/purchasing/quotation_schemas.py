from pydantic import BaseModel, Field
from typing import Any, List, Optional
from decimal import Decimal
from datetime import datetime, date

from app.models.enums.quotation_status import QuotationStatus

# =====================================================
# ITEM PAYLOADS
# =====================================================

class QuotationItemCreate(BaseModel):
    product_id: int
    quantity: Decimal = Field(gt=0)
    estimated_unit_price: Optional[Decimal] = Field(default=None, ge=0)


# =====================================================
# ITEM RESPONSES
# =====================================================

class QuotationItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    category: Optional[str]
    quantity: Decimal
    unit: str
    estimated_unit_price: Decimal
    quoted_unit_price: Optional[Decimal]
    quoted_availability: Optional[Decimal]
    line_total: Decimal


class QuotationHistoryOut(BaseModel):
    id: int
    status: QuotationStatus
    previous_status: Optional[QuotationStatus]
    action: str
    user_id: Optional[int]
    username: str
    details: Optional[dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


# =====================================================
# QUOTATION CREATE
# =====================================================

class QuotationCreate(BaseModel):
    supplier_id: int
    items: List[QuotationItemCreate] = Field(min_length=1)
    notes: Optional[str] = None


# =====================================================
# TRANSITION PAYLOADS
# =====================================================

class SendQuotationPayload(BaseModel):
    sender_name: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None


class SupplierResponsePayload(BaseModel):
    email_body: str = Field(min_length=1)


class ConfirmOrderPayload(BaseModel):
    delivery_date: Optional[date] = None
    notes: Optional[str] = None


class MarkShippedPayload(BaseModel):
    tracking_code: Optional[str] = None
    carrier: Optional[str] = None
    expected_delivery: Optional[date] = None


class ReceiptItem(BaseModel):
    product_id: int
    received_quantity: Decimal = Field(ge=0)


class ConfirmReceiptPayload(BaseModel):
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[ReceiptItem]] = None


class FollowUpPayload(BaseModel):
    reason: str = Field(min_length=1)


class CancelPayload(BaseModel):
    reason: str = Field(min_length=1)


class StatusChangePayload(BaseModel):
    status: QuotationStatus
    metadata: Optional[dict[str, Any]] = None


# =====================================================
# QUOTATION RESPONSE
# =====================================================

class QuotationOut(BaseModel):
    id: int
    quotation_number: str
    status: QuotationStatus

    supplier_id: int
    supplier_name: str
    supplier_email: Optional[str]

    estimated_total: Decimal
    quoted_total: Optional[Decimal]

    delivery_date: Optional[date]
    delivery_days: Optional[int]
    payment_terms: Optional[str]
    supplier_notes: Optional[str]
    notes: Optional[str]

    email_subject: Optional[str]
    email_body: Optional[str]
    email_sent_at: Optional[datetime]
    response_received_at: Optional[datetime]
    ai_analysis: Optional[dict[str, Any]]
    needs_manual_review: bool

    confirmed_at: Optional[datetime]
    shipped_at: Optional[datetime]
    received_at: Optional[datetime]
    invoice_number: Optional[str]
    additional_data: Optional[dict[str, Any]]

    version: int
    created_by_id: Optional[int]
    created_at: datetime
    updated_at: Optional[datetime]

    items: List[QuotationItemOut]
    history: List[QuotationHistoryOut]


class QuotationListItem(BaseModel):
    id: int
    quotation_number: str
    status: QuotationStatus
    supplier_id: int
    supplier_name: str
    items_count: int
    estimated_total: Decimal
    quoted_total: Optional[Decimal]
    needs_manual_review: bool
    created_at: datetime
    updated_at: Optional[datetime]


class QuotationListData(BaseModel):
    total: int
    items: List[QuotationListItem]


# =====================================================
# NEGOTIATION
# =====================================================

class PriceAnomaly(BaseModel):
    product_id: int
    product_name: str
    current_price: float
    historical_average: float
    deviation: float
    z_score: float
    severity: str
    potential_savings: float
    last_lowest_price: float
    last_highest_price: float
    data_points: int


class SavingsPotential(BaseModel):
    total_current: float
    total_historical_avg: float
    total_historical_low: float
    potential_from_average: float
    potential_from_best: float
    total_potential: float
    items_analyzed: int
    total_items: int
    percentage_above_average: float


class NegotiationRecommendation(BaseModel):
    strategy: str
    arguments: List[str]
    target_discount: float
    email_subject: str
    email_draft: str
    confidence: float
    risk_level: str
    source: str
    generated_at: datetime


class NegotiationAnalysis(BaseModel):
    quotation_id: int
    supplier_id: int
    anomalies: List[PriceAnomaly]
    savings_potential: SavingsPotential
    overall_score: int
    recommendations: Optional[NegotiationRecommendation]
    analyzed_at: datetime
