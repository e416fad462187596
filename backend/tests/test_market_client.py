import datetime as dt

import httpx
import pytest

from conftest import json_handler, make_record, prices_payload
from kisansure.schemas import QueryFilters
from kisansure.services.market import (
    FALLBACK_COMMODITIES,
    FALLBACK_STATES,
    MarketClient,
    MarketDataError,
    STATE_COMMODITIES,
    parse_arrival_date,
)

RELAY = "http://relay.test/api/agmarknet"

pytestmark = pytest.mark.anyio


def failing_handler(request):
    raise httpx.ConnectError("relay down", request=request)


@pytest.fixture
def market(mock_http):
    def factory(handler) -> MarketClient:
        return MarketClient(RELAY, http=mock_http(handler))

    return factory


async def test_market_prices_sends_plain_parameter_names(market, calls):
    client = market(json_handler(prices_payload([make_record()])))

    payload = await client.get_market_prices(
        QueryFilters(state="Maharashtra", commodity="Onion", arrival_date="12/03/2025", limit=25, offset=50)
    )

    assert payload.records[0].market == "Lasalgaon"
    assert dict(calls[0].url.params) == {
        "state": "Maharashtra",
        "commodity": "Onion",
        "date": "12/03/2025",
        "limit": "25",
        "offset": "50",
    }


async def test_blank_filters_are_not_sent(market, calls):
    client = market(json_handler(prices_payload([])))

    await client.get_market_prices(QueryFilters(state="", district="  ", commodity="Onion"))

    assert dict(calls[0].url.params) == {"commodity": "Onion"}


async def test_market_prices_failure_hides_detail(market):
    client = market(failing_handler)

    with pytest.raises(MarketDataError) as exc:
        await client.get_market_prices()

    assert str(exc.value) == "Failed to fetch market prices"
    assert isinstance(exc.value.__cause__, httpx.ConnectError)


async def test_relay_error_envelope_raises(market):
    client = market(json_handler({"error": "Failed to fetch from AGMARKNET", "details": "x"}, status_code=500))

    with pytest.raises(MarketDataError):
        await client.get_market_prices(QueryFilters(commodity="Onion"))


async def test_states_are_unique_sorted_and_searchable(market, calls):
    records = [
        make_record(state="Punjab"),
        make_record(state="Andhra Pradesh"),
        make_record(state="Punjab"),
        make_record(state="Madhya Pradesh"),
        make_record(state=""),
    ]
    client = market(json_handler(prices_payload(records)))

    assert await client.get_states() == ["Andhra Pradesh", "Madhya Pradesh", "Punjab"]
    assert await client.get_states("PRADESH") == ["Andhra Pradesh", "Madhya Pradesh"]
    assert dict(calls[0].url.params) == {"limit": "10000"}


async def test_states_fall_back_to_static_table(market):
    client = market(failing_handler)

    assert await client.get_states() == FALLBACK_STATES
    assert await client.get_states("kash") == ["Jammu and Kashmir"]


async def test_districts_scoped_to_state(market, calls):
    records = [make_record(district="Pune"), make_record(district="Nashik"), make_record(district="Pune")]
    client = market(json_handler(prices_payload(records)))

    assert await client.get_districts("Maharashtra") == ["Nashik", "Pune"]
    assert await client.get_districts("Maharashtra", search="pu") == ["Pune"]
    assert dict(calls[0].url.params) == {"state": "Maharashtra", "limit": "10000"}


async def test_districts_and_markets_degrade_to_empty(market):
    client = market(failing_handler)

    assert await client.get_districts("Maharashtra") == []
    assert await client.get_markets("Maharashtra", "Nashik") == []


async def test_markets_scoped_to_state_and_district(market, calls):
    records = [
        make_record(market="Lasalgaon"),
        make_record(market="Pimpalgaon"),
        make_record(market="Lasalgaon"),
        make_record(market="Yeola"),
    ]
    client = market(json_handler(prices_payload(records)))

    assert await client.get_markets("Maharashtra", "Nashik") == ["Lasalgaon", "Pimpalgaon", "Yeola"]
    assert await client.get_markets("Maharashtra", search="GAON") == ["Lasalgaon", "Pimpalgaon"]
    assert dict(calls[0].url.params) == {"state": "Maharashtra", "district": "Nashik", "limit": "10000"}
    assert dict(calls[1].url.params) == {"state": "Maharashtra", "limit": "10000"}


async def test_commodities(market, calls):
    records = [make_record(commodity="Tomato"), make_record(commodity="Onion"), make_record(commodity="Tomato")]
    client = market(json_handler(prices_payload(records)))

    assert await client.get_commodities() == ["Onion", "Tomato"]
    assert dict(calls[0].url.params) == {"limit": "2000"}


async def test_commodities_fall_back_to_common_list(market):
    client = market(failing_handler)

    result = await client.get_commodities()

    assert result == sorted(result)
    assert len(result) == 19
    assert set(result) == set(FALLBACK_COMMODITIES)


async def test_commodities_by_state(market, calls):
    records = [make_record(commodity="Onion"), make_record(commodity="Grapes"), make_record(commodity="Onion")]
    client = market(json_handler(prices_payload(records)))

    assert await client.get_commodities_by_state("Maharashtra", "Nashik", "Lasalgaon") == ["Grapes", "Onion"]
    assert await client.get_commodities_by_state("Maharashtra", search="on") == ["Onion"]
    assert dict(calls[0].url.params) == {
        "state": "Maharashtra",
        "district": "Nashik",
        "market": "Lasalgaon",
        "limit": "10000",
    }


async def test_commodities_by_state_fallback(market):
    client = market(failing_handler)

    assert await client.get_commodities_by_state("Punjab") == sorted(STATE_COMMODITIES["Punjab"])
    assert await client.get_commodities_by_state("Atlantis") == FALLBACK_COMMODITIES


async def test_latest_prices_keeps_newest_per_market_and_state(market, calls):
    records = [
        make_record(market="Lasalgaon", arrival_date="10/03/2025", modal_price="1400"),
        make_record(market="Lasalgaon", arrival_date="12/03/2025", modal_price="1500"),
        make_record(market="Lasalgaon", arrival_date="11/03/2025", modal_price="1450"),
        make_record(market="Lasalgaon", state="Karnataka", arrival_date="01/03/2025"),
        make_record(market="Azadpur", state="Delhi", arrival_date="09/03/2025", modal_price="1700"),
        make_record(market="Azadpur", state="Delhi", arrival_date="09/03/2025", modal_price="9999"),
    ]
    client = market(json_handler(prices_payload(records)))

    latest = await client.get_latest_prices("Onion")

    assert dict(calls[0].url.params) == {"commodity": "Onion", "limit": "100"}
    keys = [(r.market, r.state) for r in latest]
    assert len(keys) == len(set(keys)) == 3
    by_key = {(r.market, r.state): r for r in latest}
    assert by_key[("Lasalgaon", "Maharashtra")].modal_price == "1500"
    assert by_key[("Lasalgaon", "Karnataka")].arrival_date == "01/03/2025"
    # equal dates: the first one seen stays
    assert by_key[("Azadpur", "Delhi")].modal_price == "1700"


async def test_latest_prices_is_newest_for_every_key(market):
    records = [
        make_record(market=f"M{i % 4}", arrival_date=f"{(i * 7) % 28 + 1:02d}/02/2025")
        for i in range(40)
    ]
    client = market(json_handler(prices_payload(records)))

    latest = await client.get_latest_prices("Onion")

    for kept in latest:
        same_key = [r for r in records if r["market"] == kept.market and r["state"] == kept.state]
        newest = max(parse_arrival_date(r["arrival_date"]) for r in same_key)
        assert parse_arrival_date(kept.arrival_date) == newest


async def test_latest_prices_empty_on_failure(market):
    client = market(failing_handler)

    assert await client.get_latest_prices("Onion") == []


async def test_price_trends_is_a_date_window(market, calls):
    records = [
        make_record(arrival_date="01/01/2025", modal_price="1000"),
        make_record(arrival_date="28/02/2025", modal_price="1200"),
        make_record(arrival_date="10/03/2025", modal_price="1400"),
        make_record(arrival_date="not a date", modal_price="1"),
        make_record(arrival_date="2025-03-12", modal_price="1500"),
    ]
    client = market(json_handler(prices_payload(records)))

    trend = await client.get_price_trends("Onion", "Lasalgaon", days=30, today=dt.date(2025, 3, 15))

    assert [r.modal_price for r in trend] == ["1500", "1400", "1200"]
    params = dict(calls[0].url.params)
    assert params["commodity"] == "Onion"
    assert params["market"] == "Lasalgaon"
    assert params["limit"] == "1000"


async def test_price_trends_empty_on_failure(market):
    client = market(failing_handler)

    assert await client.get_price_trends("Onion", "Lasalgaon") == []
