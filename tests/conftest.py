import pytest
from typing import Dict, List, Optional

from tally_engine.config import ProfilerConfig
from tally_engine.services.dispatcher import ActionDispatcher, TallySession
from tally_engine.services.tally_manager import TallyManager
from tally_engine.services.tally_service import TallyService
from tally_engine.services.volume_profiler import VolumeProfiler
from tally_engine.utils.helpers import escape_xml


# ---------------------------------------------------------------------------
# Sample Tally responses
# ---------------------------------------------------------------------------

def envelope(*blocks: str) -> str:
    return "<ENVELOPE><BODY><DATA><COLLECTION>" + "".join(blocks) + "</COLLECTION></DATA></BODY></ENVELOPE>"


def ledger_xml(name: str, parent: str = "Sundry Debtors", closing: Optional[float] = None, **fields: str) -> str:
    body = f"<PARENT>{escape_xml(parent)}</PARENT>"
    if closing is not None:
        body += f"<CLOSINGBALANCE>{closing}</CLOSINGBALANCE>"
    for tag, value in fields.items():
        body += f"<{tag.upper()}>{escape_xml(value)}</{tag.upper()}>"
    return f'<LEDGER NAME="{escape_xml(name)}" RESERVEDNAME="">{body}</LEDGER>'


def bill_xml(name: str, parent: str, closing: float, due_date: Optional[str] = None) -> str:
    due = f"<FINALDUEDATE>{due_date}</FINALDUEDATE>" if due_date else ""
    return (
        f'<BILL NAME="{escape_xml(name)}" RESERVEDNAME="">'
        f"<PARENT>{escape_xml(parent)}</PARENT><CLOSINGBALANCE>{closing}</CLOSINGBALANCE>{due}</BILL>"
    )


def voucher_xml(
    date: str,
    voucher_type: str,
    number: str,
    party: Optional[str],
    amount: float,
    narration: str = "",
    entries: Optional[List[tuple]] = None,
    items: Optional[List[tuple]] = None,
) -> str:
    body = (
        f"<DATE>{date}</DATE><VOUCHERTYPENAME>{escape_xml(voucher_type)}</VOUCHERTYPENAME>"
        f"<VOUCHERNUMBER>{escape_xml(number)}</VOUCHERNUMBER>"
    )
    if party:
        body += f"<PARTYLEDGERNAME>{escape_xml(party)}</PARTYLEDGERNAME>"
    body += f"<AMOUNT>{amount}</AMOUNT>"
    if narration:
        body += f"<NARRATION>{escape_xml(narration)}</NARRATION>"
    for name, entry_amount, is_party in entries or []:
        body += (
            f"<ALLLEDGERENTRIES.LIST><LEDGERNAME>{escape_xml(name)}</LEDGERNAME>"
            f"<ISPARTYLEDGER>{'Yes' if is_party else 'No'}</ISPARTYLEDGER>"
            f"<AMOUNT>{entry_amount}</AMOUNT></ALLLEDGERENTRIES.LIST>"
        )
    for name, qty, rate, item_amount in items or []:
        body += (
            f"<ALLINVENTORYENTRIES.LIST><STOCKITEMNAME>{escape_xml(name)}</STOCKITEMNAME>"
            f"<BILLEDQTY>{qty} Nos</BILLEDQTY><RATE>{rate}/Nos</RATE>"
            f"<AMOUNT>{item_amount}</AMOUNT></ALLINVENTORYENTRIES.LIST>"
        )
    return f'<VOUCHER REMOTEID="r-{escape_xml(number)}" VCHTYPE="{escape_xml(voucher_type)}" ACTION="Create">{body}</VOUCHER>'


def company_list_xml(*names: str) -> str:
    return envelope(*(
        f'<COMPANY NAME="{escape_xml(n)}" RESERVEDNAME=""><STARTINGFROM>20250401</STARTINGFROM></COMPANY>'
        for n in names
    ))


# ---------------------------------------------------------------------------
# Fake gateway
# ---------------------------------------------------------------------------

class FakeTally:
    """
    Stands in for TallyService.

    ``responses`` maps the collection id of a request (the <ID> element) to
    a response string, an exception to raise, or a list consumed in order.
    """

    def __init__(self, responses: Optional[Dict[str, object]] = None, port: int = 9000):
        self.server = "localhost"
        self.port = port
        self.responses = dict(responses or {})
        self.requests: List[str] = []

    def ids(self) -> List[str]:
        return [request.split("<ID>", 1)[1].split("</ID>", 1)[0] for request in self.requests]

    async def send_xml(self, xml_request: str) -> str:
        self.requests.append(xml_request)
        request_id = xml_request.split("<ID>", 1)[1].split("</ID>", 1)[0]
        response = self.responses.get(request_id, envelope())
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def check_status(self):
        return await TallyService.check_status(self)


@pytest.fixture
def profiler_settings(tmp_path):
    return ProfilerConfig(profile_path=str(tmp_path / "volume-profile.json"))


@pytest.fixture
def fake_tally():
    return FakeTally({"CompanyList": company_list_xml("Demo Traders")})


@pytest.fixture
def make_session(tmp_path, profiler_settings):
    """Build a TallySession around a FakeTally with isolated profile and manager"""
    def _make(tally: FakeTally, company_fallback: Optional[str] = None, clock=None, manager=None) -> TallySession:
        kwargs = {}
        if clock is not None:
            kwargs["clock"] = clock
        return TallySession(
            port=tally.port,
            company_fallback=company_fallback,
            tally=tally,
            manager=manager or TallyManager(tally, install_path=str(tmp_path / "no-install"), platform="linux"),
            profiler=VolumeProfiler(tally, profiler_settings),
            **kwargs,
        )
    return _make


@pytest.fixture
def dispatcher(fake_tally, make_session):
    return ActionDispatcher(make_session(fake_tally))
