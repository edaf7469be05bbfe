"""
Master Data Models
Pydantic models for Tally masters (ledgers, groups, bills, stock, companies)
"""

from typing import List, Optional
from pydantic import BaseModel


class Ledger(BaseModel):
    name: str
    parent: str = ""
    closing_balance: float = 0.0
    opening_balance: Optional[float] = None


class Group(BaseModel):
    name: str
    parent: str = ""
    closing_balance: float = 0.0
    opening_balance: Optional[float] = None


class Bill(BaseModel):
    """Pending bill; the sign of closing_balance separates receivable from payable"""
    name: str
    parent: str = ""
    closing_balance: float = 0.0
    due_date: Optional[str] = None


class StockItem(BaseModel):
    name: str
    parent: str = ""
    qty: float = 0.0
    unit: str = ""
    closing_rate: float = 0.0
    closing_value: float = 0.0


class Company(BaseModel):
    """Company data folder found on disk"""
    id: str
    folder_path: str
    name: Optional[str] = None
    size_mb: float = 0.0
    file_count: int = 0
    tally_version: str = "TallyPrime"
    starting_from: Optional[str] = None
    last_modified: str = ""


class OpenCompany(BaseModel):
    """Company currently loaded in the running Tally"""
    name: str
    starting_from: Optional[str] = None
    books_from: Optional[str] = None


class CompanyInfo(BaseModel):
    name: str = ""
    address: List[str] = []
    email: str = ""
    state: str = ""
    pincode: str = ""
    gstin: str = ""
    phone: str = ""
    bank_name: str = ""
    account_number: str = ""
    ifsc_code: str = ""
    bank_branch: str = ""


class PartyDetail(BaseModel):
    name: str = ""
    address: List[str] = []
    gstin: str = ""
    state: str = ""
    phone: str = ""
    email: str = ""


class PartyContact(BaseModel):
    name: str
    phone: str = ""
    email: str = ""
    contact: str = ""


class TallyIni(BaseModel):
    """Settings read from a TallyPrime installation's tally.ini"""
    install_path: Optional[str] = None
    data_path: Optional[str] = None
    exe_path: Optional[str] = None
    port: int = 9000
    load_companies: List[str] = []


class ProcessStatus(BaseModel):
    running: bool = False
    pid: Optional[int] = None
