"""
XML Builder Module
Composes Tally request envelopes from declarative collection specs

Every report query is an inline TDL collection export:

    <ENVELOPE>
      <HEADER>VERSION 1 / TALLYREQUEST Export / TYPE Collection / ID name</HEADER>
      <BODY><DESC>
        <STATICVARIABLES>SVEXPORTFORMAT, SVCURRENTCOMPANY, SVFROMDATE, SVTODATE</STATICVARIABLES>
        <TDL><TDLMESSAGE>COLLECTION ... SYSTEM Formulae ...</TDLMESSAGE></TDL>
      </DESC></BODY>
    </ENVELOPE>

OR-conditions over groups are expressed as a union collection of CHILDOF
scoped sub-collections; TallyPrime rejects most $$GroupOf/UNDER formulas.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel

from ..utils.constants import EXPORT_FORMAT, TALLY_XML_HEADER
from ..utils.helpers import escape_xml


class CollectionSpec(BaseModel):
    """Declarative description of one TDL collection"""
    name: str
    type: Optional[str] = None
    fetch: List[str] = []
    native_methods: List[str] = []
    child_of: Optional[str] = None
    belongs_to: bool = False
    # filter name -> formula, emitted as <FILTER> + <SYSTEM TYPE="Formulae">
    filters: Dict[str, str] = {}
    union_of: List["CollectionSpec"] = []


CollectionSpec.model_rebuild()


class XMLBuilder:
    """Builds Tally XML envelopes"""

    def _static_variables(
        self,
        company: Optional[str],
        from_date: Optional[str],
        to_date: Optional[str],
        export_format: str,
        extra: Optional[Dict[str, str]],
    ) -> str:
        parts = [f"<SVEXPORTFORMAT>{export_format}</SVEXPORTFORMAT>"]
        if company:
            parts.append(f"<SVCURRENTCOMPANY>{escape_xml(company)}</SVCURRENTCOMPANY>")
        if from_date or to_date:
            # A single bound is used for both ends
            actual_from = from_date or to_date
            actual_to = to_date or from_date
            parts.append(f"<SVFROMDATE>{escape_xml(actual_from)}</SVFROMDATE>")
            parts.append(f"<SVTODATE>{escape_xml(actual_to)}</SVTODATE>")
        for key, value in (extra or {}).items():
            parts.append(f"<{key}>{escape_xml(value)}</{key}>")
        return "".join(parts)

    def _collection(self, spec: CollectionSpec) -> List[str]:
        """Render a collection and its union members as TDL fragments"""
        body = []
        if spec.union_of:
            body.append(f"<COLLECTION>{', '.join(sub.name for sub in spec.union_of)}</COLLECTION>")
        if spec.type:
            body.append(f"<TYPE>{spec.type}</TYPE>")
        if spec.child_of:
            body.append(f"<CHILDOF>{escape_xml(spec.child_of)}</CHILDOF>")
        if spec.belongs_to:
            body.append("<BELONGSTO>Yes</BELONGSTO>")
        if spec.fetch:
            body.append(f"<FETCH>{', '.join(spec.fetch)}</FETCH>")
        for method in spec.native_methods:
            body.append(f"<NATIVEMETHOD>{method}</NATIVEMETHOD>")
        for filter_name in spec.filters:
            body.append(f"<FILTER>{filter_name}</FILTER>")

        fragments = [f'<COLLECTION NAME="{spec.name}" ISMODIFY="No">' + "".join(body) + "</COLLECTION>"]
        for filter_name, formula in spec.filters.items():
            fragments.append(f'<SYSTEM TYPE="Formulae" NAME="{filter_name}">{formula}</SYSTEM>')
        for sub in spec.union_of:
            fragments.extend(self._collection(sub))
        return fragments

    def build_collection(
        self,
        spec: CollectionSpec,
        company: Optional[str] = None,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
        export_format: str = EXPORT_FORMAT,
        static_variables: Optional[Dict[str, str]] = None,
    ) -> str:
        """Build an Export/Collection envelope for the given spec"""
        sv = self._static_variables(company, from_date, to_date, export_format, static_variables)
        tdl = "".join(self._collection(spec))
        return (
            f"{TALLY_XML_HEADER}<ENVELOPE>"
            f"<HEADER><VERSION>1</VERSION><TALLYREQUEST>Export</TALLYREQUEST>"
            f"<TYPE>Collection</TYPE><ID>{spec.name}</ID></HEADER>"
            f"<BODY><DESC><STATICVARIABLES>{sv}</STATICVARIABLES>"
            f"<TDL><TDLMESSAGE>{tdl}</TDLMESSAGE></TDL>"
            f"</DESC></BODY></ENVELOPE>"
        )

    def build_import(self, company: Optional[str], message_xml: str, import_id: str = "Vouchers") -> str:
        """Build an Import/Data envelope around one TALLYMESSAGE payload"""
        sv = f"<SVCURRENTCOMPANY>{escape_xml(company)}</SVCURRENTCOMPANY>" if company else ""
        return (
            f"{TALLY_XML_HEADER}<ENVELOPE>"
            f"<HEADER><VERSION>1</VERSION><TALLYREQUEST>Import</TALLYREQUEST>"
            f"<TYPE>Data</TYPE><ID>{import_id}</ID></HEADER>"
            f"<BODY><DESC><STATICVARIABLES>{sv}</STATICVARIABLES></DESC>"
            f"<DATA><TALLYMESSAGE>{message_xml}</TALLYMESSAGE></DATA>"
            f"</BODY></ENVELOPE>"
        )


def equals_formula(field: str, value: str) -> str:
    """$Field = "value" with the value escaped"""
    return f'${field} = "{escape_xml(value)}"'


def contains_formula(field: str, value: str) -> str:
    return f'${field} Contains "{escape_xml(value)}"'


NON_ZERO_BALANCE = "$ClosingBalance != 0"


# Global builder instance
xml_builder = XMLBuilder()
