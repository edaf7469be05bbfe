"""
Tally Manager Module
====================
Discovers companies on disk and starts, stops or restarts TallyPrime.

WINDOWS ONLY:
------------
Process checks use ``tasklist`` / ``taskkill`` through asyncio
subprocesses. On any other platform Tally is reported as not running and
nothing is spawned.

COMPANY DISCOVERY:
-----------------
- tally.ini (install folder) gives the data path, server port and the
  Load= entries of the active company folders
- every numeric sub-folder of the data path holding Company.1800
  (TallyPrime) or Company.900 (Tally.ERP9) is a company
- company files are binary; the first readable UTF-16LE run is taken as
  the company name
- names confirmed by a running Tally are cached in
  .tally-engine-companies.json inside the data folder so they survive
  restarts (best effort, write failures are logged and ignored)
"""

import asyncio
import json
import re
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..config import config
from ..models.master import Company, OpenCompany, ProcessStatus, TallyIni
from ..models.reports import CompanyListReport, TallyStatusReport
from ..models.response import ReportResult
from ..utils.constants import COMPANY_CACHE_FILENAME, TALLY_EXE, TALLY_INI, TALLY_SEARCH_PATHS
from ..utils.formatters import SEP
from ..utils.helpers import format_tally_date
from ..utils.logger import logger
from .tally_service import TallyService

_COMPANY_FOLDER = re.compile(r"^\d+$")
_READABLE_NAME = re.compile(r"[A-Za-z][A-Za-z0-9 \-.]{3,}")
_TASKLIST_PID = re.compile(r'"tally\.exe","(\d+)"', re.IGNORECASE)
_LOAD_LINE = re.compile(r"^Load=.*$", re.MULTILINE)


def parse_tally_ini(install_path: Optional[str] = None, search_paths: Optional[List[str]] = None) -> TallyIni:
    """Read tally.ini from install_path, or the first standard path that has one"""
    if not install_path:
        for candidate in search_paths if search_paths is not None else TALLY_SEARCH_PATHS:
            if (Path(candidate) / TALLY_INI).exists():
                install_path = candidate
                break

    ini = TallyIni(install_path=install_path)
    if not install_path:
        return ini

    ini_path = Path(install_path) / TALLY_INI
    if not ini_path.exists():
        return ini

    exe_path = Path(install_path) / TALLY_EXE
    if exe_path.exists():
        ini.exe_path = str(exe_path)

    for line in ini_path.read_text(encoding="utf-8", errors="ignore").splitlines():
        trimmed = line.strip()
        if trimmed.startswith(";") or "=" not in trimmed:
            continue
        key, _, value = trimmed.partition("=")
        key, value = key.strip().lower(), value.strip()
        if not value:
            continue
        if key == "data":
            ini.data_path = value
        elif key == "serverport":
            ini.port = int(value) if value.isdigit() else 9000
        elif key == "load":
            ini.load_companies.append(value)
    return ini


def extract_company_name(company_file: Path) -> Optional[str]:
    """First readable name in the UTF-16LE head of a Company.1800/900 file"""
    try:
        with open(company_file, "rb") as f:
            head = f.read(4000)
    except OSError:
        return None
    text = head[:len(head) - len(head) % 2].decode("utf-16-le", errors="replace")
    clean = re.sub(r"[^\x20-\x7E]", "|", text)
    match = _READABLE_NAME.search(clean)
    return match.group(0).strip() if match else None


def load_cache(data_path: Optional[str]) -> Dict[str, Dict[str, Any]]:
    if not data_path:
        return {}
    cache_path = Path(data_path) / COMPANY_CACHE_FILENAME
    if not cache_path.exists():
        return {}
    try:
        return json.loads(cache_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable company cache {cache_path}: {e}")
        return {}


def save_cache(data_path: Optional[str], cache: Dict[str, Dict[str, Any]]) -> None:
    if not data_path:
        return
    cache_path = Path(data_path) / COMPANY_CACHE_FILENAME
    try:
        cache_path.write_text(json.dumps(cache, indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not write company cache {cache_path}: {e}")


def scan_data_folder(data_path: Optional[str]) -> List[Company]:
    """Company folders under the data path, largest first"""
    if not data_path or not Path(data_path).is_dir():
        return []

    cache = load_cache(data_path)
    cache_updated = False
    companies = []

    for folder in Path(data_path).iterdir():
        if not folder.is_dir() or not _COMPANY_FOLDER.match(folder.name):
            continue
        if (folder / "Company.1800").exists():
            company_file, version = folder / "Company.1800", "TallyPrime"
        elif (folder / "Company.900").exists():
            company_file, version = folder / "Company.900", "Tally.ERP9"
        else:
            continue

        files = list(folder.iterdir())
        total_size = 0
        latest = company_file.stat().st_mtime
        for path in files:
            try:
                if path.is_file():
                    stat = path.stat()
                    total_size += stat.st_size
                    latest = max(latest, stat.st_mtime)
            except OSError:
                continue

        cached = cache.get(folder.name, {})
        extracted = extract_company_name(company_file)
        if extracted and cached.get("name") != extracted:
            cache[folder.name] = {**cached, "name": extracted, "updated_at": datetime.now().isoformat()}
            cache_updated = True

        companies.append(Company(
            id=folder.name,
            folder_path=str(folder),
            name=extracted or cached.get("name"),
            size_mb=round(total_size / 1024 / 1024, 1),
            file_count=len(files),
            tally_version=version,
            starting_from=cached.get("starting_from"),
            last_modified=datetime.fromtimestamp(latest).strftime("%Y-%m-%d"),
        ))

    if cache_updated:
        save_cache(data_path, cache)

    companies.sort(key=lambda c: c.size_mb, reverse=True)
    return companies


def match_company(companies: List[Company], query: str) -> Tuple[Optional[Company], List[Company]]:
    """
    Pick a company by folder id, exact name, unique partial name or list number.

    Returns (match, ambiguous partial matches).
    """
    wanted = (query or "").strip().lower()
    for company in companies:
        if company.id == wanted:
            return company, []
    for company in companies:
        if company.name and company.name.lower() == wanted:
            return company, []

    partials = [c for c in companies if c.name and wanted in c.name.lower()]
    if len(partials) == 1:
        return partials[0], []
    if len(partials) > 1:
        return None, partials

    if wanted.isdigit():
        index = int(wanted) - 1
        if 0 <= index < len(companies):
            return companies[index], []
    return None, []


async def _run_command(*args: str, timeout: float = 10.0) -> Tuple[int, str]:
    """Run a command, returning (exit code, stdout)"""
    process = await asyncio.create_subprocess_exec(
        *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.DEVNULL,
    )
    stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    return process.returncode, stdout.decode(errors="ignore")


class TallyManager:
    """Process and company management for one Tally session"""

    def __init__(
        self,
        tally: TallyService,
        install_path: Optional[str] = None,
        runner: Callable[..., Awaitable[Tuple[int, str]]] = _run_command,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        platform: Optional[str] = None,
    ):
        self.tally = tally
        self.install_path = install_path or config.tally.install_path or None
        self._run = runner
        self._sleep = sleep
        self.platform = platform or sys.platform

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    def read_ini(self) -> TallyIni:
        return parse_tally_ini(self.install_path)

    async def is_running(self) -> ProcessStatus:
        if not self.is_windows:
            return ProcessStatus()
        try:
            _, output = await self._run(
                "tasklist", "/FI", f"IMAGENAME eq {TALLY_EXE}", "/FO", "CSV", "/NH", timeout=5.0,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning(f"tasklist failed: {e}")
            return ProcessStatus()
        match = _TASKLIST_PID.search(output)
        if match:
            return ProcessStatus(running=True, pid=int(match.group(1)))
        return ProcessStatus()

    async def kill(self) -> bool:
        if not self.is_windows:
            return False
        try:
            code, _ = await self._run("taskkill", "/IM", TALLY_EXE, "/F", timeout=10.0)
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"taskkill failed: {e}")
            return False
        return code == 0

    async def launch(self, exe_path: Optional[str]) -> bool:
        """Spawn tally.exe and give it a moment to come up"""
        if not self.is_windows or not exe_path or not Path(exe_path).exists():
            return False
        try:
            await asyncio.create_subprocess_exec(
                exe_path, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Could not spawn {exe_path}: {e}")
            return False
        logger.info(f"Launched {exe_path}")
        await self._sleep(2)
        return True

    async def refresh_company_cache(self, ini: TallyIni, open_companies: List[OpenCompany]) -> None:
        """Map names reported by a running Tally onto the Load= folder ids"""
        if not ini.data_path or not open_companies or not ini.load_companies:
            return
        if len(open_companies) == 1:
            pairs = [(ini.load_companies[0], open_companies[0])]
        elif len(ini.load_companies) == len(open_companies):
            pairs = list(zip(ini.load_companies, open_companies))
        else:
            return

        cache = load_cache(ini.data_path)
        now = datetime.now().isoformat()
        for folder_id, company in pairs:
            cache[folder_id] = {
                "name": company.name,
                "starting_from": company.starting_from,
                "books_from": company.books_from,
                "updated_at": now,
            }
        save_cache(ini.data_path, cache)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def restart(self) -> ReportResult:
        status = await self.is_running()
        if status.running:
            if not await self.kill():
                return ReportResult.fail("Could not stop Tally. Please close it manually.")
            await self._sleep(3)

        exe_path = self.read_ini().exe_path
        if not exe_path:
            return ReportResult.fail("Could not find tally.exe. Please start Tally manually.")
        if not await self.launch(exe_path):
            return ReportResult.fail(f"Could not start Tally. Please start it manually from: {exe_path}")

        for _ in range(10):
            await self._sleep(3)
            check = await self.tally.check_status()
            if check["responding"]:
                return ReportResult.ok(f"✅ Tally restarted. Active company: {check['active_company'] or 'None'}")
        return ReportResult.ok("Tally started but HTTP server not responding yet. It may take a moment to load.")

    async def start(self) -> ReportResult:
        status = await self.is_running()
        if status.running:
            return ReportResult.ok(f"Tally is already running (PID: {status.pid}).")
        exe_path = self.read_ini().exe_path
        if not exe_path:
            return ReportResult.fail("Could not find tally.exe. Please start Tally manually.")
        if not await self.launch(exe_path):
            return ReportResult.fail("Could not start Tally. Please start it manually.")
        return ReportResult.ok("✅ Tally is starting up. It may take a moment to load.")

    async def full_status(self) -> ReportResult:
        """Process, HTTP gateway and on-disk companies in one message"""
        ini = self.read_ini()
        process = await self.is_running()
        http = await self.tally.check_status()
        if http["responding"]:
            await self.refresh_company_cache(ini, http["companies"])
        companies = scan_data_folder(ini.data_path)

        lines = ["🖥️ *Tally Status*", ""]
        lines.append(f"✅ Tally is running (PID: {process.pid})" if process.running else "❌ Tally is not running")
        if process.running:
            lines.append("✅ HTTP server responding" if http["responding"] else "⚠️ HTTP server not responding")
        if ini.install_path:
            lines.append(f"📁 Install: {ini.install_path}")
        if ini.data_path:
            lines.append(f"📁 Data: {ini.data_path}")
        lines.append(f"🔌 Port: {ini.port}")

        if companies:
            loaded = set(ini.load_companies)
            lines.extend(["", f"*Companies on disk:* ({len(companies)})"])
            for i, company in enumerate(companies):
                active = " ✅ _active_" if company.id in loaded else ""
                name = f"*{company.name}*" if company.name else f"_Unknown ({company.id})_"
                fy = f" | FY: {format_tally_date(company.starting_from)}" if company.starting_from else ""
                lines.append(f"{i + 1}. {name}{active}")
                lines.append(
                    f"   📂 {company.id} | {company.size_mb:g} MB | {company.file_count} files | "
                    f"Modified: {company.last_modified}{fy}"
                )
        else:
            lines.extend(["", "No company data folders found."])

        lines.extend(["", SEP])
        if not process.running:
            lines.append('💡 Say "start tally" to launch TallyPrime')
        elif not http["responding"]:
            lines.append('💡 Say "restart tally" to fix the connection')
        else:
            unnamed = sum(1 for c in companies if not c.name)
            if unnamed:
                lines.append(f"💡 {unnamed} company name(s) not yet cached. Load them in Tally to identify.")

        report = TallyStatusReport(
            running=process.running,
            pid=process.pid,
            responding=http["responding"],
            active_company=http["active_company"],
            companies=companies,
            ini=ini,
        )
        return ReportResult.ok("\n".join(lines), data=report)

    def list_companies(self) -> ReportResult:
        """Companies on disk; works while Tally is down"""
        ini = self.read_ini()
        companies = scan_data_folder(ini.data_path)
        report = CompanyListReport(companies=companies, active_ids=ini.load_companies)
        if not companies:
            return ReportResult.ok("No company data folders found.", data=report)

        loaded = set(ini.load_companies)
        lines = ["📋 *Companies on this system:*", ""]
        for i, company in enumerate(companies):
            active = " ✅ _active_" if company.id in loaded else ""
            fy = f" | FY: {format_tally_date(company.starting_from)}" if company.starting_from else ""
            lines.append(f"{i + 1}. *{company.name or f'Unknown ({company.id})'}*{active}")
            lines.append(f"   {company.size_mb:g} MB | {company.file_count} files | {company.tally_version}{fy}")
        return ReportResult.ok("\n".join(lines), data=report)

    def company_picker(self) -> ReportResult:
        """Prompt listing the companies open_company can switch to"""
        ini = self.read_ini()
        companies = scan_data_folder(ini.data_path)
        if not companies:
            return ReportResult.fail("No company data folders found.")
        lines = ["Which company do you want to open?", ""]
        for i, company in enumerate(companies):
            active = " ✅" if company.id in ini.load_companies else ""
            lines.append(f"{i + 1}. {company.name or company.id}{active}")
        lines.extend(["", "Reply with the company name or number."])
        return ReportResult.ok("\n".join(lines), data=CompanyListReport(companies=companies, active_ids=ini.load_companies))

    async def open_company(self, query: str) -> ReportResult:
        """Point tally.ini's Load= line at the chosen company and restart Tally"""
        ini = self.read_ini()
        if not ini.install_path or not ini.data_path:
            return ReportResult.fail("Could not find TallyPrime installation or data path.")
        ini_path = Path(ini.install_path) / TALLY_INI
        if not ini_path.exists():
            return ReportResult.fail(f"tally.ini not found at {ini_path}")

        companies = scan_data_folder(ini.data_path)
        if not companies:
            return ReportResult.fail(f"No company data folders found in {ini.data_path}")

        match, ambiguous = match_company(companies, query)
        if ambiguous:
            lines = [f'Multiple companies match "{query}":']
            lines.extend(f"{i + 1}. {c.name} ({c.id})" for i, c in enumerate(ambiguous))
            lines.append("\nPlease be more specific.")
            return ReportResult.fail("\n".join(lines))
        if match is None:
            lines = [f'Company "{query}" not found. Available companies:']
            lines.extend(f"{i + 1}. {c.name or c.id}" for i, c in enumerate(companies))
            return ReportResult.fail("\n".join(lines))

        label = match.name or match.id
        if match.id in ini.load_companies and (await self.is_running()).running:
            return ReportResult.ok(f"✅ *{label}* is already the active company.")

        backup = ini_path.with_name(ini_path.name + ".bak")
        if not backup.exists():
            shutil.copyfile(ini_path, backup)
        content = ini_path.read_text(encoding="utf-8", errors="ignore")
        load_line = f"Load={match.id}"
        if _LOAD_LINE.search(content):
            content = _LOAD_LINE.sub(load_line, content, count=1)
        else:
            if content and not content.endswith("\n"):
                content += "\n"
            content += load_line + "\n"
        ini_path.write_text(content, encoding="utf-8")
        logger.info(f"tally.ini now loads company folder {match.id} ({label})")

        result = await self.restart()
        if result.success:
            return ReportResult.ok(f"✅ Opened *{label}* in TallyPrime.")
        return ReportResult.fail(
            f"Updated tally.ini to load *{label}*, but Tally restart failed: {result.message}"
        )
