from typing import Optional, List, Dict, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------- Price data ----------

class PriceRecord(BaseModel):
    """One Agmarknet observation. Prices are INR/quintal decimal strings, untouched."""
    model_config = ConfigDict(extra="allow")

    state: str = ""
    district: str = ""
    market: str = ""
    commodity: str = ""
    variety: str = ""
    grade: str = ""
    arrival_date: str = ""   # 'DD/MM/YYYY' from data.gov.in, ISO from other sources
    min_price: str = ""
    max_price: str = ""
    modal_price: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, v):
        # upstream sends nulls and, for some rows, numeric prices
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


class QueryFilters(BaseModel):
    state: Optional[str] = None
    district: Optional[str] = None
    market: Optional[str] = None
    commodity: Optional[str] = None
    variety: Optional[str] = None
    grade: Optional[str] = None
    arrival_date: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1)
    offset: Optional[int] = Field(None, ge=0)

    @field_validator("state", "district", "market", "commodity", "variety", "grade", "arrival_date", mode="before")
    @classmethod
    def _blank_is_absent(cls, v):
        # "" must never become a filter on the empty string
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    def to_params(self) -> Dict[str, str]:
        """Query parameters understood by the /api/agmarknet relay."""
        params: Dict[str, str] = {}
        for field in ("state", "district", "market", "commodity", "variety", "grade"):
            value = getattr(self, field)
            if value:
                params[field] = value
        if self.arrival_date:
            params["date"] = self.arrival_date
        if self.limit:
            params["limit"] = str(self.limit)
        if self.offset:
            params["offset"] = str(self.offset)
        return params


# ---------- Relay envelopes ----------

class PricesPayload(BaseModel):
    """Successful upstream response; extra metadata (title, field, ...) is kept."""
    model_config = ConfigDict(extra="allow")

    records: List[PriceRecord] = Field(default_factory=list)
    total: Optional[int] = None
    count: Optional[int] = None
    limit: Optional[Union[int, str]] = None
    offset: Optional[Union[int, str]] = None


class ErrorEnvelope(BaseModel):
    error: str
    details: Optional[str] = None


# ---------- Derived views ----------

class PriceStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    average: int
    minimum: float
    maximum: float
    record_count: int = Field(..., alias="recordCount")


class BoardResult(BaseModel):
    mode: Literal["live", "demo"]
    source: Literal["agmarknet", "search", "demo"]
    commodity: str
    location: str
    records: List[PriceRecord] = Field(default_factory=list)
    stats: Optional[PriceStats] = None
    error: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
