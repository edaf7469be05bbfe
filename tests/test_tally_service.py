import asyncio

import httpx
import pytest

from tally_engine.services.tally_service import TallyService
from tally_engine.utils.constants import TransportErrorKind
from tally_engine.utils.exceptions import TallyTransportError

from conftest import company_list_xml


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_service(handler, clock=None, **kwargs) -> TallyService:
    clock = clock or FakeClock()
    return TallyService(
        server="localhost",
        port=9000,
        timeout=5,
        min_request_gap=1.5,
        transport=httpx.MockTransport(handler),
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_send_xml_posts_utf8_xml_and_returns_text():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="<ENVELOPE>ok</ENVELOPE>")

    service = make_service(handler)
    response = await service.send_xml("<ENVELOPE>Café</ENVELOPE>")

    assert response == "<ENVELOPE>ok</ENVELOPE>"
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "http://localhost:9000"
    assert seen[0].headers["content-type"] == "text/xml"
    assert seen[0].content == "<ENVELOPE>Café</ENVELOPE>".encode("utf-8")


@pytest.mark.asyncio
async def test_first_request_never_waits_and_next_one_is_paced():
    clock = FakeClock()
    service = make_service(lambda request: httpx.Response(200, text="ok"), clock=clock)

    await service.send_xml("<A/>")
    assert clock.sleeps == []

    clock.now += 0.5
    await service.send_xml("<B/>")
    assert clock.sleeps == [pytest.approx(1.0)]

    clock.now += 10
    await service.send_xml("<C/>")
    assert len(clock.sleeps) == 1


@pytest.mark.asyncio
async def test_connection_refused_is_classified():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(TallyTransportError) as exc_info:
        await make_service(handler).send_xml("<A/>")
    assert exc_info.value.kind == TransportErrorKind.REFUSED
    assert exc_info.value.is_connection_error


@pytest.mark.asyncio
async def test_reset_and_timeout_are_classified():
    def reset(request):
        raise httpx.ReadError("Connection reset by peer", request=request)

    def timeout(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TallyTransportError) as reset_info:
        await make_service(reset).send_xml("<A/>")
    assert reset_info.value.kind == TransportErrorKind.RESET

    with pytest.raises(TallyTransportError) as timeout_info:
        await make_service(timeout).send_xml("<A/>")
    assert timeout_info.value.kind == TransportErrorKind.TIMEOUT
    assert not timeout_info.value.is_connection_error


@pytest.mark.asyncio
async def test_http_error_status_is_classified():
    service = make_service(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(TallyTransportError) as exc_info:
        await service.send_xml("<A/>")
    assert exc_info.value.kind == TransportErrorKind.HTTP


@pytest.mark.asyncio
async def test_check_status_reports_active_company():
    service = make_service(lambda request: httpx.Response(200, text=company_list_xml("Demo Traders", "Other Co")))
    status = await service.check_status()

    assert status["responding"] is True
    assert status["active_company"] == "Demo Traders"
    assert [c.name for c in status["companies"]] == ["Demo Traders", "Other Co"]


@pytest.mark.asyncio
async def test_check_status_never_raises():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    status = await make_service(handler).check_status()
    assert status["responding"] is False
    assert status["active_company"] is None
    assert status["kind"] == TransportErrorKind.REFUSED


def test_service_built_outside_a_loop_works_inside_one():
    service = make_service(lambda request: httpx.Response(200, text="ok"))
    assert service._lock is None

    assert asyncio.run(service.send_xml("<ENVELOPE/>")) == "ok"
    assert service._lock is not None
