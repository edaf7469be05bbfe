import json
from unittest.mock import AsyncMock

import pytest

from tally_engine.models.master import Company
from tally_engine.services.tally_manager import (
    TallyManager, extract_company_name, match_company, parse_tally_ini, scan_data_folder,
)
from tally_engine.utils.constants import COMPANY_CACHE_FILENAME

from conftest import FakeTally, company_list_xml


def company_file(folder, name: str, filename: str = "Company.1800", padding: int = 0):
    folder.mkdir(parents=True, exist_ok=True)
    (folder / filename).write_bytes(b"\x00\x01" + name.encode("utf-16-le") + b"\x00" * (2 + padding))


@pytest.fixture
def install(tmp_path):
    """Install folder with tally.exe, a tally.ini and two companies on disk"""
    install_dir = tmp_path / "TallyPrime"
    data_dir = tmp_path / "Data"
    install_dir.mkdir()
    (install_dir / "tally.exe").write_bytes(b"MZ")
    (install_dir / "tally.ini").write_text(
        "; TallyPrime configuration\n"
        f"Data={data_dir}\n"
        "ServerPort=9100\n"
        "User=\n"
        "Load=10000\n",
        encoding="utf-8",
    )
    company_file(data_dir / "10000", "Demo Traders")
    company_file(data_dir / "10001", "Old Books Co", filename="Company.900", padding=200000)
    return install_dir, data_dir


async def no_runner(*args, timeout=10.0):
    raise AssertionError("process commands must not run off Windows")


def test_parse_tally_ini(install):
    install_dir, data_dir = install
    ini = parse_tally_ini(str(install_dir))

    assert ini.data_path == str(data_dir)
    assert ini.port == 9100
    assert ini.load_companies == ["10000"]
    assert ini.exe_path == str(install_dir / "tally.exe")


def test_parse_tally_ini_searches_standard_paths(install, tmp_path):
    install_dir, _ = install
    ini = parse_tally_ini(search_paths=[str(tmp_path / "missing"), str(install_dir)])
    assert ini.install_path == str(install_dir)

    empty = parse_tally_ini(search_paths=[str(tmp_path / "missing")])
    assert empty.install_path is None
    assert empty.port == 9000


def test_extract_company_name(tmp_path):
    company_file(tmp_path / "1", "Meril Life Sciences")
    assert extract_company_name(tmp_path / "1" / "Company.1800") == "Meril Life Sciences"
    assert extract_company_name(tmp_path / "missing" / "Company.1800") is None


def test_scan_data_folder(install):
    _, data_dir = install
    (data_dir / "Backup").mkdir()
    company_file(data_dir / "Backup", "Ignored Co")
    (data_dir / "10002").mkdir()

    companies = scan_data_folder(str(data_dir))

    assert [c.id for c in companies] == ["10001", "10000"]
    assert companies[0].name == "Old Books Co"
    assert companies[0].tally_version == "Tally.ERP9"
    assert companies[0].size_mb == 0.2
    assert companies[1].tally_version == "TallyPrime"

    cache = json.loads((data_dir / COMPANY_CACHE_FILENAME).read_text(encoding="utf-8"))
    assert cache["10000"]["name"] == "Demo Traders"


def test_scan_uses_cached_name_for_unreadable_files(tmp_path):
    (tmp_path / "20000").mkdir()
    (tmp_path / "20000" / "Company.1800").write_bytes(b"\x00" * 16)
    (tmp_path / COMPANY_CACHE_FILENAME).write_text(
        json.dumps({"20000": {"name": "Cached Co", "starting_from": "20240401"}}), encoding="utf-8"
    )

    [company] = scan_data_folder(str(tmp_path))

    assert company.name == "Cached Co"
    assert company.starting_from == "20240401"
    assert scan_data_folder(str(tmp_path / "nowhere")) == []


def test_match_company():
    companies = [
        Company(id="10000", folder_path="", name="Meril Life Sciences"),
        Company(id="10001", folder_path="", name="Meril Diagnostics"),
        Company(id="10002", folder_path="", name="Atul Traders"),
    ]

    assert match_company(companies, "10002")[0].name == "Atul Traders"
    assert match_company(companies, "meril diagnostics")[0].id == "10001"
    assert match_company(companies, "atul")[0].id == "10002"
    assert match_company(companies, "2")[0].id == "10001"

    match, ambiguous = match_company(companies, "meril")
    assert match is None
    assert [c.id for c in ambiguous] == ["10000", "10001"]
    assert match_company(companies, "unknown") == (None, [])


@pytest.mark.asyncio
async def test_is_running_parses_tasklist():
    running = AsyncMock(return_value=(0, '"tally.exe","4242","Console","1","250,000 K"\r\n'))
    idle = AsyncMock(return_value=(0, "INFO: No tasks are running which match the specified criteria.\r\n"))
    skipped = AsyncMock()

    status = await TallyManager(FakeTally(), runner=running, platform="win32").is_running()
    assert status.running and status.pid == 4242
    assert running.await_args.args[0] == "tasklist"

    assert not (await TallyManager(FakeTally(), runner=idle, platform="win32").is_running()).running
    assert not (await TallyManager(FakeTally(), runner=skipped, platform="linux").is_running()).running
    skipped.assert_not_awaited()


def test_list_companies_marks_active(install):
    install_dir, _ = install
    result = TallyManager(FakeTally(), install_path=str(install_dir), platform="linux").list_companies()

    assert result.success
    assert result.message.splitlines()[0] == "📋 *Companies on this system:*"
    assert "*Demo Traders* ✅ _active_" in result.message
    assert "*Old Books Co*" in result.message
    assert result.data.active_ids == ["10000"]


def test_company_picker(install):
    install_dir, _ = install
    result = TallyManager(FakeTally(), install_path=str(install_dir), platform="linux").company_picker()

    assert result.message.startswith("Which company do you want to open?")
    assert "2. Demo Traders ✅" in result.message


@pytest.mark.asyncio
async def test_full_status_caches_names_from_running_tally(install):
    install_dir, data_dir = install
    tally = FakeTally({"CompanyList": company_list_xml("Demo Traders")})
    result = await TallyManager(tally, install_path=str(install_dir), runner=no_runner, platform="linux").full_status()

    assert "❌ Tally is not running" in result.message
    assert "FY: 01-04-2025" in result.message
    assert '💡 Say "start tally" to launch TallyPrime' in result.message
    assert result.data.responding
    assert result.data.active_company == "Demo Traders"

    cache = json.loads((data_dir / COMPANY_CACHE_FILENAME).read_text(encoding="utf-8"))
    assert cache["10000"]["starting_from"] == "20250401"


@pytest.mark.asyncio
async def test_open_company_rewrites_load_line(install):
    install_dir, _ = install
    manager = TallyManager(FakeTally(), install_path=str(install_dir), runner=no_runner, platform="linux")

    result = await manager.open_company("old books")

    ini = (install_dir / "tally.ini").read_text(encoding="utf-8")
    assert "Load=10001" in ini
    assert "Load=10000" not in ini
    assert (install_dir / "tally.ini.bak").exists()
    # Spawning tally.exe only happens on Windows
    assert not result.success
    assert result.message.startswith("Updated tally.ini to load *Old Books Co*, but Tally restart failed")


@pytest.mark.asyncio
async def test_open_company_unknown_name_lists_choices(install):
    install_dir, _ = install
    manager = TallyManager(FakeTally(), install_path=str(install_dir), platform="linux")

    result = await manager.open_company("Nothing Here")

    assert not result.success
    assert result.message.startswith('Company "Nothing Here" not found. Available companies:')


@pytest.mark.asyncio
async def test_open_company_adds_missing_load_line(install):
    install_dir, data_dir = install
    (install_dir / "tally.ini").write_text(f"Data={data_dir}\nServerPort=9100", encoding="utf-8")
    manager = TallyManager(FakeTally(), install_path=str(install_dir), runner=no_runner, platform="linux")

    await manager.open_company("demo traders")

    ini = (install_dir / "tally.ini").read_text(encoding="utf-8")
    assert ini == f"Data={data_dir}\nServerPort=9100\nLoad=10000\n"
    assert parse_tally_ini(str(install_dir)).load_companies == ["10000"]
