"""
Transaction Models
Pydantic models for vouchers and voucher creation requests
"""

from typing import List, Optional
from pydantic import BaseModel


class LedgerEntry(BaseModel):
    name: str
    amount: float = 0.0
    is_party: bool = False


class InventoryEntry(BaseModel):
    name: str
    qty: float = 0.0
    rate: float = 0.0
    amount: float = 0.0


class Voucher(BaseModel):
    date: str = ""
    voucher_type: str = ""
    number: str = ""
    party: Optional[str] = None
    amount: float = 0.0
    narration: Optional[str] = None
    ledger_entries: List[LedgerEntry] = []
    inventory_entries: List[InventoryEntry] = []


class VoucherTypeCount(BaseModel):
    name: str
    count: int = 0


class VoucherItem(BaseModel):
    """Line item of a voucher to be created"""
    name: str = ""
    qty: float = 0.0
    rate: float = 0.0
    amount: Optional[float] = None

    @property
    def line_amount(self) -> float:
        return self.amount if self.amount else self.qty * self.rate


class VoucherRequest(BaseModel):
    voucher_type: str = ""
    party_name: str = ""
    amount: Optional[float] = None
    date: Optional[str] = None
    narration: str = ""
    items: List[VoucherItem] = []
    sales_ledger: Optional[str] = None
    cash_ledger: Optional[str] = None


class ImportResult(BaseModel):
    """Counters returned by a Tally import request"""
    created: int = 0
    altered: int = 0
    errors: int = 0
    voucher_number: Optional[str] = None
    line_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.created > 0 and self.errors == 0


class ActivityEntry(BaseModel):
    """One dated amount attributed to a party or stock item"""
    name: str
    date: str = ""
    amount: float = 0.0
    qty: float = 0.0
