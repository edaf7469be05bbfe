"""
Entity Resolver Module
Matches a spoken or typed party name against Tally ledger names

RESOLUTION ORDER:
----------------
1. Contains-search with the full text; a case-insensitive exact hit wins
2. One search result is taken as the party
3. Several results are scored and offered as suggestions
4. No results: search again with the longest word (3+ letters) and apply
   the same rules, still scoring against the full text

A MultipleMatch is never auto-resolved; the caller shows the suggestions.
"""

from typing import List, Optional

from ..config import config
from ..models.master import Ledger
from ..models.resolution import Candidate, ExactMatch, MultipleMatch, NoMatch, PartyResolution, SingleMatch
from ..utils.logger import logger
from .reports.ledgers import build_search_ledgers_xml, parse_ledgers
from .tally_service import TallyService


def score_candidate(name: str, query: str) -> int:
    """+10 when the name starts with the query, +2 per query word it contains"""
    lowered_name = name.lower()
    lowered_query = query.lower()
    score = 10 if lowered_name.startswith(lowered_query) else 0
    for word in lowered_query.split():
        if word in lowered_name:
            score += 2
    return score


def rank_candidates(ledgers: List[Ledger], query: str, limit: int) -> List[Candidate]:
    candidates = [Candidate(name=l.name, parent=l.parent, score=score_candidate(l.name, query)) for l in ledgers]
    # sorted() is stable, equal scores keep Tally's order
    candidates = sorted(candidates, key=lambda c: c.score, reverse=True)
    return candidates[:limit]


def fallback_term(query: str) -> Optional[str]:
    """Longest word of 3+ letters, None when it would repeat the full query"""
    words = [w for w in query.split() if len(w) >= 3]
    if not words:
        return None
    longest = max(words, key=len)
    return None if longest == query.strip() else longest


def format_suggestions(candidates: List[Candidate], query: str) -> str:
    lines = [f'No exact match for "{query}". Did you mean:']
    for i, candidate in enumerate(candidates):
        lines.append(f"{i + 1}. {candidate.name} ({candidate.parent or 'N/A'})")
    lines.append("\nReply with the exact name to proceed.")
    return "\n".join(lines)


class EntityResolver:
    """Resolves party names through ledger searches on one Tally session"""

    def __init__(self, tally: TallyService, max_suggestions: Optional[int] = None):
        self.tally = tally
        self.max_suggestions = max_suggestions or config.report.max_suggestions

    async def search(self, term: str, company: Optional[str]) -> List[Ledger]:
        response = await self.tally.send_xml(build_search_ledgers_xml(term, company))
        return parse_ledgers(response)

    def _from_results(self, results: List[Ledger], query: str) -> Optional[PartyResolution]:
        if len(results) == 1:
            return SingleMatch(name=results[0].name)
        if len(results) > 1:
            return MultipleMatch(candidates=rank_candidates(results, query, self.max_suggestions))
        return None

    async def resolve(self, text: str, company: Optional[str]) -> PartyResolution:
        """Resolve free text to a ledger name; transport errors propagate"""
        results = await self.search(text, company)
        wanted = text.lower()
        for ledger in results:
            if ledger.name.lower() == wanted:
                return ExactMatch(name=ledger.name)

        resolution = self._from_results(results, text)
        if resolution is not None:
            return resolution

        term = fallback_term(text)
        if term:
            logger.debug(f'No ledger contains "{text}", retrying with "{term}"')
            resolution = self._from_results(await self.search(term, company), text)
            if resolution is not None:
                return resolution

        logger.info(f'Party "{text}" not found in Tally')
        return NoMatch()
