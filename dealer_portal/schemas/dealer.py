from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dealer_portal.core.enums import DealerStatus


class Store(BaseModel):
    code: str
    name: str = ""
    address: str = ""


class Dealer(BaseModel):
    id: Optional[str] = None
    code: str
    name: str
    sap_bp_code: str = ""
    contact: str = ""
    email: str = ""
    region: str = ""
    status: Optional[DealerStatus] = None
    outstanding_balance: float = 0.0
    credit_limit: float = 0.0
    credit_terms: str = "None"
    mfa_enabled: bool = False
    password_expiry: Optional[date] = None
    stores: List[Store] = []


class LoginIn(BaseModel):
    code: str
    password: str


class LoginOut(BaseModel):
    dealer: Dealer
    access_token: str
    token_type: str = "bearer"


class RegisterIn(BaseModel):
    email: str = Field(min_length=3)
    dealer_code: str = Field(min_length=1)
    password: str
    dealer_name: str = Field(min_length=1)
    contact_person: str = Field(min_length=1)
    phone: str = ""
    region: str = "NCR"


class RegisterOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    id: str
    message: str
    pm_warning: Optional[str] = Field(None, alias="pmWarning")


class ChangePasswordIn(BaseModel):
    code: str
    current_password: str
    new_password: str


class ChangePasswordOut(BaseModel):
    success: bool = True
    new_expiry: date
