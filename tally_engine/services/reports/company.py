"""
Company Reports
Loaded-company list and the company header used on invoices
"""

from typing import List, Optional

from ...models.master import CompanyInfo, OpenCompany
from ...utils.constants import SYSTEM_EXPORT_FORMAT
from ..response_parser import first_record, iter_records
from ..xml_builder import CollectionSpec, xml_builder


COMPANY_LIST = CollectionSpec(
    name="CompanyList",
    type="Company",
    fetch=["Name", "StartingFrom", "BooksFrom"],
)

COMPANY_INFO = CollectionSpec(
    name="CompanyInfo",
    type="Company",
    fetch=[
        "Name", "FormalName", "Address.List", "StateName", "PinCode", "PhoneNumber", "Email",
        "GSTIN", "BasicCompanyMailName", "BasicCompanyFormalName", "BankDetails.List",
        "BankName", "AccountNumber", "IFSCCode", "BankBranchName",
    ],
)


def build_company_list_xml() -> str:
    """Companies currently loaded in Tally; never scoped to a company"""
    return xml_builder.build_collection(COMPANY_LIST, export_format=SYSTEM_EXPORT_FORMAT)


def parse_company_list(xml: str) -> List[OpenCompany]:
    return [
        OpenCompany(
            name=record.name,
            starting_from=record.text("STARTINGFROM") or None,
            books_from=record.text("BOOKSFROM") or None,
        )
        for record in iter_records(xml, "COMPANY")
    ]


def build_company_info_xml(company: Optional[str]) -> str:
    return xml_builder.build_collection(COMPANY_INFO, company=company)


def parse_company_info(xml: str) -> CompanyInfo:
    """Company header fields; an empty CompanyInfo when Tally returned none"""
    record = first_record(xml, "COMPANY")
    if record is None:
        return CompanyInfo()
    return CompanyInfo(
        name=record.text("BASICCOMPANYFORMALNAME") or record.text("NAME") or record.name,
        address=record.all_text("ADDRESS"),
        email=record.text("EMAIL"),
        state=record.text("STATENAME"),
        pincode=record.text("PINCODE"),
        gstin=record.text("GSTIN"),
        phone=record.text("PHONENUMBER"),
        bank_name=record.text("BANKNAME"),
        account_number=record.text("ACCOUNTNUMBER"),
        ifsc_code=record.text("IFSCCODE"),
        bank_branch=record.text("BANKBRANCHNAME"),
    )
