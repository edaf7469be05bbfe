"""
Response Parser Module
Narrow regex scanner over Tally XML responses

Tally's collection exports are not reliably well-formed XML: control
character entities (&#4;), stray counters and mixed encodings are common.
Instead of a full XML parser, records are located by their opening tag and
fields are read with tag-addressed regular expressions. All regex handling
of Tally output lives in this module.
"""

import re
from functools import lru_cache
from typing import Iterator, List, Optional

from ..config import config
from ..models.transaction import ImportResult, InventoryEntry, LedgerEntry, Voucher
from ..utils.helpers import decode_xml, parse_tally_amount

_NAME_ATTR = re.compile(r'\sNAME="([^"]*)"', re.IGNORECASE)
_VCHTYPE_ATTR = re.compile(r'\sVCHTYPE="([^"]*)"', re.IGNORECASE)
_LINE_ERROR = re.compile(r"<LINEERROR[^>]*>([^<]*)</LINEERROR>", re.IGNORECASE)
_ANY_LIST = re.compile(r"<([A-Z0-9_.]+\.LIST)(?:\s[^>]*)?>[\s\S]*?</\1>", re.IGNORECASE)


@lru_cache(maxsize=None)
def _record_pattern(tag: str, named: bool) -> "re.Pattern":
    t = re.escape(tag)
    if named:
        return re.compile(rf'<{t}\s+NAME="[^"]*"[^>]*>[\s\S]*?</{t}>', re.IGNORECASE)
    return re.compile(rf"<{t}\s[^>]*>[\s\S]*?</{t}>", re.IGNORECASE)


@lru_cache(maxsize=None)
def _field_pattern(tag: str) -> "re.Pattern":
    t = re.escape(tag)
    return re.compile(rf"<{t}(?:\s[^>]*)?>([^<]*)</{t}>", re.IGNORECASE)


@lru_cache(maxsize=None)
def _list_pattern(tag: str) -> "re.Pattern":
    # LEDGERENTRIES.LIST also matches ALLLEDGERENTRIES.LIST
    t = re.escape(tag)
    return re.compile(rf"<((?:ALL)?{t})(?:\s[^>]*)?>([\s\S]*?)</\1>", re.IGNORECASE)


class Record:
    """One matched block of a Tally response"""

    def __init__(self, tag: str, block: str):
        self.tag = tag
        self.block = block
        opening = block[:block.find(">") + 1]
        name_match = _NAME_ATTR.search(opening)
        self.name = decode_xml(name_match.group(1).strip()) if name_match else ""
        vchtype_match = _VCHTYPE_ATTR.search(opening)
        self.vchtype = decode_xml(vchtype_match.group(1).strip()) if vchtype_match else ""

    def raw(self, tag: str) -> Optional[str]:
        """Trimmed raw text of the first <tag>, None when absent"""
        match = _field_pattern(tag).search(self.block)
        return match.group(1).strip() if match else None

    def text(self, tag: str, default: str = "") -> str:
        """Entity-decoded text of the first <tag>"""
        value = self.raw(tag)
        return decode_xml(value) if value else default

    def all_text(self, tag: str) -> List[str]:
        """Decoded non-empty text of every <tag> in the block"""
        values = (decode_xml(m.group(1).strip()) for m in _field_pattern(tag).finditer(self.block))
        return [v for v in values if v]

    def number(self, tag: str) -> float:
        return parse_tally_amount(self.raw(tag))

    def has(self, tag: str) -> bool:
        return self.raw(tag) is not None

    def children(self, list_tag: str) -> List["Record"]:
        """Nested *.LIST blocks, accepting the ALL-prefixed form"""
        return [Record(m.group(1), m.group(0)) for m in _list_pattern(list_tag).finditer(self.block)]

    def without_lists(self) -> "Record":
        """Same record with every nested *.LIST block removed"""
        return Record(self.tag, _ANY_LIST.sub("", self.block))

    def __repr__(self) -> str:
        return f"Record({self.tag!r}, name={self.name!r})"


def iter_records(xml: str, tag: str, named: bool = True) -> Iterator[Record]:
    """Yield <TAG NAME="..."> blocks (or any attributed <TAG ...> when named=False)"""
    for match in _record_pattern(tag, named).finditer(xml or ""):
        yield Record(tag, match.group(0))


def iter_vouchers(xml: str, require_vchtype: bool = False) -> Iterator[Record]:
    """Yield <VOUCHER ...> blocks, optionally only those carrying VCHTYPE"""
    for record in iter_records(xml, "VOUCHER", named=False):
        if require_vchtype and not record.vchtype:
            continue
        yield record


def first_record(xml: str, tag: str) -> Optional[Record]:
    return next(iter_records(xml, tag), None)


def line_error(xml: str) -> Optional[str]:
    """Text of the first <LINEERROR>, if Tally reported one"""
    match = _LINE_ERROR.search(xml or "")
    if not match:
        return None
    return decode_xml(match.group(1).strip()) or None


def clean_group_name(text: Optional[str], pattern: Optional[str] = None) -> str:
    """Decode &amp;, drop control entities such as &#4; and trim"""
    if not text:
        return ""
    pattern = pattern or config.tally.control_entity_pattern
    return re.sub(pattern, "", text.replace("&amp;", "&")).strip()


def is_top_level(parent: Optional[str], sentinels: Optional[List[str]] = None, pattern: Optional[str] = None) -> bool:
    """True when a group's parent marks it as a primary group"""
    sentinels = sentinels if sentinels is not None else config.tally.top_level_parents
    return clean_group_name(parent, pattern) in [s.strip() for s in sentinels]


def parse_voucher(record: Record) -> Voucher:
    """Header fields plus ledger and inventory entries of a voucher block"""
    ledger_entries = []
    for entry in record.children("LEDGERENTRIES.LIST"):
        name = entry.text("LEDGERNAME")
        if not name:
            continue
        is_party = entry.text("ISPARTYLEDGER").lower() == "yes"
        ledger_entries.append(LedgerEntry(name=name, amount=entry.number("AMOUNT"), is_party=is_party))

    inventory_entries = []
    for entry in record.children("INVENTORYENTRIES.LIST"):
        name = entry.text("STOCKITEMNAME")
        if not name:
            continue
        inventory_entries.append(InventoryEntry(
            name=name,
            qty=entry.number("BILLEDQTY") or entry.number("ACTUALQTY"),
            rate=entry.number("RATE"),
            amount=entry.number("AMOUNT"),
        ))

    # Header fields must not pick up AMOUNT/DATE from an entry list
    header = record.without_lists()
    return Voucher(
        date=header.text("DATE"),
        voucher_type=header.text("VOUCHERTYPENAME") or record.vchtype,
        number=header.text("VOUCHERNUMBER"),
        party=header.text("PARTYLEDGERNAME") or None,
        amount=header.number("AMOUNT"),
        narration=header.text("NARRATION") or None,
        ledger_entries=ledger_entries,
        inventory_entries=inventory_entries,
    )


def parse_vouchers(xml: str, require_vchtype: bool = False) -> List[Voucher]:
    return [parse_voucher(record) for record in iter_vouchers(xml, require_vchtype)]


_IMPORT_COUNTER = {
    tag: (
        re.compile(rf'{tag}\s*=\s*"(\d+)"', re.IGNORECASE),
        re.compile(rf"<{tag}[^>]*>(\d+)</{tag}>", re.IGNORECASE),
    )
    for tag in ("CREATED", "ALTERED", "ERRORS")
}
_VCHNO_ATTR = re.compile(r'VCHNO\s*=\s*"([^"]*)"', re.IGNORECASE)


def _import_counter(xml: str, tag: str) -> int:
    for pattern in _IMPORT_COUNTER[tag]:
        match = pattern.search(xml)
        if match:
            return int(match.group(1))
    return 0


def parse_import_result(xml: str) -> ImportResult:
    """Counters of an Import/Data response; Tally emits them as attributes or tags"""
    xml = xml or ""
    number = _VCHNO_ATTR.search(xml)
    if number:
        voucher_number = decode_xml(number.group(1)) or None
    else:
        voucher_number = first_text(xml, "VOUCHERNUMBER")
    return ImportResult(
        created=_import_counter(xml, "CREATED"),
        altered=_import_counter(xml, "ALTERED"),
        errors=_import_counter(xml, "ERRORS"),
        voucher_number=voucher_number,
        line_error=line_error(xml),
    )


def first_text(xml: str, tag: str) -> Optional[str]:
    """Decoded text of the first <tag> anywhere in the response"""
    match = _field_pattern(tag).search(xml or "")
    if not match:
        return None
    return decode_xml(match.group(1).strip()) or None
