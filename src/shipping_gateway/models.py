from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator

# Submitted values are rendered as given; strings and numbers both occur.
FieldValue = Any


class FormModel(BaseModel):
    """Base for submission parts: every field optional, unknown keys kept."""

    model_config = ConfigDict(extra="allow")


class SubmittedBy(FormModel):
    name: Optional[FieldValue] = None
    email: Optional[FieldValue] = None


class Party(FormModel):
    name: Optional[FieldValue] = None
    address1: Optional[FieldValue] = None
    address2: Optional[FieldValue] = None
    city: Optional[FieldValue] = None
    country: Optional[FieldValue] = None
    postcode: Optional[FieldValue] = None
    email: Optional[FieldValue] = None
    phone: Optional[FieldValue] = None


class Container(FormModel):
    containerNumber: Optional[FieldValue] = None
    description: Optional[FieldValue] = None
    quantity: Optional[FieldValue] = None
    value: Optional[FieldValue] = None
    hsCode: Optional[FieldValue] = None
    weight: Optional[FieldValue] = None


class ShippingSubmission(FormModel):
    user: Optional[SubmittedBy] = None
    carrierReference: Optional[FieldValue] = None
    billingParty: Optional[Party] = None
    shipper: Optional[Party] = None
    consignee: Optional[Party] = None
    shipmentValue: Optional[FieldValue] = None
    notes: Optional[FieldValue] = None
    containers: Optional[List[Container]] = None

    @model_validator(mode="before")
    @classmethod
    def drop_malformed_parts(cls, data: Any) -> Any:
        # Wrong-shaped parts render as blanks; a non-list containers value
        # is dropped so rendering reports the missing table.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("user", "billingParty", "shipper", "consignee"):
            if data.get(key) is not None and not isinstance(data[key], dict):
                data[key] = None
        containers = data.get("containers")
        if containers is not None:
            if isinstance(containers, list):
                data["containers"] = [entry if isinstance(entry, dict) else {} for entry in containers]
            else:
                data["containers"] = None
        return data


class ListSummary(BaseModel):
    displayName: Optional[str] = None
    id: str


class SubmitResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
    details: Any = None


ListItem = Dict[str, Any]
