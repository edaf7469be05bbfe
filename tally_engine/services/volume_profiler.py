"""
Volume Profiler Module
======================
Keeps voucher requests small enough for Tally to answer.

Tally slows down sharply (or times out) when one collection export
returns more than a few hundred vouchers. The profiler estimates how many
vouchers a company books per day and turns that into a chunk size for
date-ranged voucher queries.

PROFILE:
-------
- Probed by counting yesterday's vouchers (today may still be in progress)
- A probe that finds nothing, or fails, assumes the holiday floor (10/day)
- Persisted as JSON {avgPerDay, lastProbed, companyName}
- Re-probed when missing, older than stale_hours, or for another company

CHUNKING:
--------
chunk_days = clamp(floor(safe_limit / avg_per_day), min_chunk, max_chunk)
Chunking only applies when a full month would exceed the safe limit.
"""

import math
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..config import ProfilerConfig, config
from ..models.query import QueryStrategy, QueryWindow, VolumeProfile
from ..utils.exceptions import TallyTransportError
from ..utils.helpers import date_to_tally, split_date_range
from ..utils.logger import logger
from .reports.vouchers import build_vouchers_xml, parse_voucher_list
from .tally_service import TallyService


class VolumeProfiler:
    """Per-session voucher volume estimate and query planner"""

    def __init__(self, tally: TallyService, settings: Optional[ProfilerConfig] = None):
        self.tally = tally
        self.settings = settings or config.profiler
        self.profile_path = Path(self.settings.profile_path)

    def load_profile(self) -> Optional[VolumeProfile]:
        """Stored profile, None when missing or unreadable"""
        if not self.profile_path.exists():
            return None
        try:
            return VolumeProfile.model_validate_json(self.profile_path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable volume profile {self.profile_path}: {e}")
            return None

    def save_profile(self, profile: VolumeProfile) -> None:
        try:
            self.profile_path.parent.mkdir(parents=True, exist_ok=True)
            self.profile_path.write_text(profile.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not save volume profile to {self.profile_path}: {e}")

    def is_stale(self, profile: Optional[VolumeProfile], now: Optional[datetime] = None) -> bool:
        if profile is None:
            return True
        now = now or datetime.now(timezone.utc)
        last_probed = profile.last_probed
        if last_probed.tzinfo is None:
            last_probed = last_probed.replace(tzinfo=timezone.utc)
        return now - last_probed > timedelta(hours=self.settings.stale_hours)

    async def probe_daily_volume(self, company: Optional[str], today: Optional[date] = None) -> float:
        """Number of vouchers booked yesterday, floored for empty days"""
        yesterday = date_to_tally((today or date.today()) - timedelta(days=1))
        try:
            response = await self.tally.send_xml(build_vouchers_xml(company, yesterday, yesterday))
        except TallyTransportError as e:
            logger.warning(f"Volume probe failed ({e.kind}), assuming {self.settings.probe_floor} vouchers/day")
            return float(self.settings.probe_floor)

        count = parse_voucher_list(response, limit=0, from_date=yesterday, to_date=yesterday).total_count
        logger.info(f"Volume probe for {company or 'active company'}: {count} vouchers on {yesterday}")
        return float(count) if count > 0 else float(self.settings.probe_floor)

    def calculate_chunk_days(self, avg_per_day: float) -> int:
        if avg_per_day <= 0:
            return self.settings.max_chunk_days
        days = math.floor(self.settings.safe_voucher_limit / avg_per_day)
        return max(self.settings.min_chunk_days, min(days, self.settings.max_chunk_days))

    async def get_query_strategy(self, company: Optional[str]) -> QueryStrategy:
        profile = self.load_profile()
        if profile is None or self.is_stale(profile) or profile.company_name != company:
            avg_per_day = await self.probe_daily_volume(company)
            profile = VolumeProfile(
                avg_per_day=avg_per_day,
                last_probed=datetime.now(timezone.utc),
                company_name=company,
            )
            self.save_profile(profile)

        return QueryStrategy(
            chunk_days=self.calculate_chunk_days(profile.avg_per_day),
            avg_per_day=profile.avg_per_day,
            needs_chunking=profile.avg_per_day * 31 > self.settings.safe_voucher_limit,
        )

    async def plan_windows(self, company: Optional[str], from_date: Optional[str], to_date: Optional[str]) -> List[QueryWindow]:
        """Query windows covering [from_date, to_date]; one window unless chunking is needed"""
        strategy = await self.get_query_strategy(company)
        if not strategy.needs_chunking:
            return [QueryWindow(from_date=from_date, to_date=to_date)]

        windows = split_date_range(from_date, to_date, strategy.chunk_days)
        logger.debug(
            f"Chunking {from_date}..{to_date} into {len(windows)} windows of {strategy.chunk_days} days "
            f"({strategy.avg_per_day:g} vouchers/day)"
        )
        return [QueryWindow(from_date=start, to_date=end) for start, end in windows]
