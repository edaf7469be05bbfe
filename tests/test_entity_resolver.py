import pytest

from tally_engine.models.master import Ledger
from tally_engine.models.resolution import ExactMatch, MultipleMatch, NoMatch, SingleMatch
from tally_engine.services.entity_resolver import (
    EntityResolver, fallback_term, format_suggestions, rank_candidates, score_candidate,
)

from conftest import FakeTally, envelope, ledger_xml


def test_score_candidate():
    assert score_candidate("Meril Life Sciences", "meril") == 12
    assert score_candidate("Atul Singh Traders", "singh") == 2
    assert score_candidate("Atul Singh Traders", "atul singh") == 14
    assert score_candidate("ABC Co", "xyz") == 0


def test_rank_candidates_is_stable_and_limited():
    ledgers = [Ledger(name=n) for n in ["B Rajesh", "A Rajesh", "Rajesh Kumar", "Rajesh Traders"]]
    ranked = rank_candidates(ledgers, "Rajesh", limit=3)
    assert [c.name for c in ranked] == ["Rajesh Kumar", "Rajesh Traders", "B Rajesh"]


def test_fallback_term():
    assert fallback_term("Rajesh Kumar Enterprises") == "Enterprises"
    assert fallback_term("Meril") is None
    assert fallback_term("AB CD") is None


@pytest.mark.asyncio
async def test_exact_match_wins_case_insensitively():
    tally = FakeTally({"LedgerSearch": envelope(ledger_xml("Meril Life"), ledger_xml("MERIL"))})
    resolution = await EntityResolver(tally).resolve("meril", "Demo")
    assert resolution == ExactMatch(name="MERIL")


@pytest.mark.asyncio
async def test_single_result_is_taken():
    tally = FakeTally({"LedgerSearch": envelope(ledger_xml("Meril Life Sciences Pvt Ltd"))})
    resolution = await EntityResolver(tally).resolve("Meril", "Demo")
    assert resolution == SingleMatch(name="Meril Life Sciences Pvt Ltd")
    assert len(tally.requests) == 1


@pytest.mark.asyncio
async def test_several_results_become_suggestions():
    tally = FakeTally({"LedgerSearch": envelope(
        ledger_xml("Rajesh Kumar"), ledger_xml("Rajesh Traders", parent="Sundry Creditors"),
    )})
    resolution = await EntityResolver(tally).resolve("Rajesh", "Demo")

    assert isinstance(resolution, MultipleMatch)
    assert [c.name for c in resolution.candidates] == ["Rajesh Kumar", "Rajesh Traders"]
    assert resolution.candidates[1].parent == "Sundry Creditors"


@pytest.mark.asyncio
async def test_fallback_search_uses_longest_word_but_scores_full_text():
    tally = FakeTally({"LedgerSearch": [
        envelope(),
        envelope(ledger_xml("Rajesh Traders"), ledger_xml("Kumar Rajesh")),
    ]})
    resolution = await EntityResolver(tally).resolve("Kumar Rajesh", "Demo")

    assert isinstance(resolution, MultipleMatch)
    assert resolution.candidates[0].name == "Kumar Rajesh"
    assert 'Contains "Rajesh"' in tally.requests[1]


@pytest.mark.asyncio
async def test_no_results_anywhere():
    tally = FakeTally({"LedgerSearch": envelope()})
    assert await EntityResolver(tally).resolve("Nobody Known", "Demo") == NoMatch()
    assert len(tally.requests) == 2


def test_format_suggestions():
    resolution = MultipleMatch(candidates=[{"name": "Rajesh Kumar", "parent": "Sundry Debtors"}])
    text = format_suggestions(resolution.candidates, "Rajesh")
    assert text.startswith('No exact match for "Rajesh". Did you mean:')
    assert "1. Rajesh Kumar (Sundry Debtors)" in text
    assert text.endswith("Reply with the exact name to proceed.")


@pytest.mark.asyncio
async def test_resolved_name_resolves_to_itself():
    tally = FakeTally({"LedgerSearch": envelope(ledger_xml("Meril Life Sciences Pvt Ltd"))})
    resolver = EntityResolver(tally)

    first = await resolver.resolve("meril life", "Demo")
    again = await resolver.resolve(first.name, "Demo")

    assert isinstance(first, SingleMatch)
    assert isinstance(again, ExactMatch)
    assert again.name == first.name
