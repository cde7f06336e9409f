"""Pydantic models for the remote service's request bodies."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class LeadUpdateRequest(BaseModel):
    """Partial lead update. Only fields the client sent are applied."""

    model_config = ConfigDict(populate_by_name=True)

    status: Optional[str] = None
    next_follow_up_date: Optional[str] = Field(None, alias="nextFollowUpDate")
    temperature: Optional[str] = None
    visit_status: Optional[str] = Field(None, alias="visitStatus")
    visit_date: Optional[str] = Field(None, alias="visitDate")
    last_remark: Optional[str] = Field(None, alias="lastRemark")
    remarks: Optional[str] = None
    booking_status: Optional[str] = Field(None, alias="bookingStatus")
    is_read: Optional[bool] = Field(None, alias="isRead")
    assigned_salesperson_id: Optional[str] = Field(None, alias="assignedSalespersonId")

    def to_payload(self) -> Dict[str, Any]:
        """The camelCase keys the client actually sent."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class WebsiteLeadRequest(BaseModel):
    """Lead captured by a website contact form."""

    model_config = ConfigDict(populate_by_name=True)

    customer_name: Optional[str] = Field(None, alias="customerName")
    mobile: Optional[str] = None
    email: Optional[str] = None
    source: Optional[str] = "website"
    city: Optional[str] = None
    platform: Optional[str] = None
    interested_project: Optional[str] = Field(None, alias="interestedProject")
    interested_unit: Optional[str] = Field(None, alias="interestedUnit")
    remarks: Optional[str] = None
    budget: Optional[str] = None
    purpose: Optional[str] = None


class SyncUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str
    role: str = "Salesperson"
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")


class UserSyncRequest(BaseModel):
    users: List[SyncUser] = Field(default_factory=list)
