import pytest

from stompwire.frame import HK_HEART_BEAT, Headers, StompError
from stompwire.heartbeats import (
    EHBCLIENT,
    EHBCX,
    EHBCY,
    EHBSERVER,
    EHBSX,
    EHBSY,
    negotiate_heartbeats,
)


def hb(value):
    return Headers([HK_HEART_BEAT, value])


def test_no_client_header_means_no_plan():
    assert negotiate_heartbeats(Headers(), hb("100,100")) is None


def test_no_server_header_means_no_plan():
    assert negotiate_heartbeats(hb("100,100"), Headers()) is None


def test_zero_values_mean_no_plan():
    assert negotiate_heartbeats(hb("0,0"), hb("100,100")) is None
    assert negotiate_heartbeats(hb("100,100"), hb("0,0")) is None


def test_no_direction_active_means_no_plan():
    # client can send but broker does not want; broker sends but client refuses
    assert negotiate_heartbeats(hb("100,0"), hb("100,0")) is None


def test_send_only_takes_larger_value():
    plan = negotiate_heartbeats(hb("100,0"), hb("0,400"))
    assert plan.send is True
    assert plan.receive is False
    assert plan.send_interval_ms == 400
    assert plan.receive_interval_ms == 0
    assert plan.send_interval_ns == plan.send_interval_ms * 1_000_000


def test_receive_only_takes_larger_value():
    plan = negotiate_heartbeats(hb("0,250"), hb("750,0"))
    assert plan.send is False
    assert plan.receive is True
    assert plan.receive_interval_ms == 750
    assert plan.send_interval_ns == 0


def test_both_directions():
    plan = negotiate_heartbeats(hb("500,500"), hb("500,500"))
    assert plan.send and plan.receive
    assert plan.send_interval_ms == 500
    assert plan.receive_interval_ms == 500
    assert plan.send_interval == plan.send_interval_ms / 1000


def test_receive_lateness_tolerance():
    plan = negotiate_heartbeats(hb("0,500"), hb("500,0"))
    interval = plan.receive_interval_ns
    assert plan.is_receive_late(interval) is False
    assert plan.is_receive_late(plan.receive_tolerance_ns) is False
    assert plan.is_receive_late(plan.receive_tolerance_ns + 1) is True
    assert plan.is_receive_late(2 * interval) is True


def test_not_late_when_not_receiving():
    plan = negotiate_heartbeats(hb("500,0"), hb("0,500"))
    assert plan.is_receive_late(10**15) is False


@pytest.mark.parametrize(
    "client, server, message, value",
    [
        ("1,2,3", "100,100", EHBCLIENT, "1,2,3"),
        ("100", "100,100", EHBCLIENT, "100"),
        ("abc,100", "100,100", EHBCX, "abc"),
        ("100,x", "100,100", EHBCY, "x"),
        ("100,100", "100", EHBSERVER, "100"),
        ("100,100", " 1,100", EHBSX, " 1"),
        ("100,100", "100,1.5", EHBSY, "1.5"),
    ],
)
def test_malformed_headers_raise(client, server, message, value):
    with pytest.raises(StompError) as info:
        negotiate_heartbeats(hb(client), hb(server))
    assert info.value.message == message
    assert info.value.value == value


def test_plain_lists_are_accepted():
    plan = negotiate_heartbeats([HK_HEART_BEAT, "300,0"], [HK_HEART_BEAT, "0,300"])
    assert plan.send_interval_ms == 300