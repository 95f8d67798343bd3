from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional


class EmailDraft(BaseModel):
    subject: str
    body: str
    source: Literal["gemini", "template"] = "gemini"


class SupplierAnalysis(BaseModel):
    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    raw_response: Optional[str] = None


# =====================================================
# INVOICE SCANNER
# =====================================================

class InvoiceScanRequest(BaseModel):
    image_base64: str = Field(min_length=1)
    mime_type: str = "image/jpeg"
    match_products: bool = True


class ValidationIssue(BaseModel):
    code: str
    message: str


class InvoiceValidation(BaseModel):
    valid: bool
    errors: List[ValidationIssue]
    warnings: List[ValidationIssue]
    canProceed: bool


class InvoiceScanOut(BaseModel):
    metadata: Optional[dict[str, Any]] = None
    items: List[dict[str, Any]]
    overallConfidence: Optional[float] = None
    validation: InvoiceValidation
