from decimal import Decimal

import pytest

from pipeshaper.errors import BackendProtocolViolation
from pipeshaper.parsers.ipfw_text import (
    RuleRecord,
    parse_bandwidth,
    parse_confirmation,
    parse_loss,
    parse_queue_header,
    parse_queue_status,
    parse_rule_line,
    parse_rule_listing,
)


def test_queue_header_mbit():
    assert parse_queue_header("00300:   1.234 Mbit/s 42 ms") == (300, 1_234_000, 42)


def test_queue_header_unlimited():
    assert parse_queue_header("00300:   unlimited 10 ms") == (300, None, 10)


def test_queue_header_kbit_and_trailing_fields():
    assert parse_queue_header("00100: 768.000 Kbit/s  150 ms burst 0") == (100, 768_000, 150)


def test_queue_header_raw_bits():
    assert parse_queue_header("00007:     300 bit/s    0 ms") == (7, 300, 0)


@pytest.mark.parametrize("line", [
    "00300:   1.23 Mbit/s 42 ms",
    "00300:   1.2345 Mbit/s 42 ms",
    "00300:   1.500 bit/s 42 ms",
    "00300:   fast 42 ms",
    "00300:   1.234 Mbit/s ms",
])
def test_queue_header_malformed_is_an_error(line):
    with pytest.raises(BackendProtocolViolation):
        parse_queue_header(line)


def test_non_header_lines_are_ignored():
    assert parse_queue_header("    mask: 0x00 0x00000000/0x0000 -> 0x00000000/0x0000") is None
    assert parse_queue_header("BKT Prot ___Source IP/port____ ____Dest. IP/port____") is None
    assert parse_queue_header("") is None


def test_parse_bandwidth_values():
    assert parse_bandwidth("unlimited") is None
    assert parse_bandwidth("2.000 Mbit/s") == 2_000_000
    assert parse_bandwidth("1.500 Kbit/s") == 1_500
    with pytest.raises(BackendProtocolViolation):
        parse_bandwidth("2.0 Mbit/s")


def test_parse_loss():
    assert parse_loss("q131372  50 sl.plr 0.000100 0 flows (1 buckets)") == Decimal("0.0001")
    assert parse_loss("q131372  50 sl. 0 flows (1 buckets)") is None
    with pytest.raises(BackendProtocolViolation):
        parse_loss("50 sl.plr lots 0 flows")
    with pytest.raises(BackendProtocolViolation):
        parse_loss("50 sl.plr 1.5 0 flows")


def test_queue_status_loss_in_second_block():
    text = (
        "00300: 768.000 Kbit/s  150 ms burst 0\n"
        "q131372  50 sl.plr 0.000100 0 flows (1 buckets) sched 65836 weight 0 lmax 0 pri 0 droptail\n"
        " sched 65836 type FIFO flags 0x0 0 buckets 0 active\n"
    )
    rec = parse_queue_status(text)
    assert (rec.queue_id, rec.bandwidth, rec.delay) == (300, 768_000, 150)
    assert rec.loss == Decimal("0.0001")


def test_queue_status_loss_on_header_line():
    text = (
        "00300: 768.000 Kbit/s  150 ms   50 sl.plr 0.020000 0 queues (1 buckets) droptail\n"
        "    mask: 0x00 0x00000000/0x0000 -> 0x00000000/0x0000\n"
    )
    rec = parse_queue_status(text)
    assert rec.loss == Decimal("0.02")


def test_queue_status_empty_output():
    assert parse_queue_status("") is None


def test_rule_line_ip():
    assert parse_rule_line("00200 pipe 100 ip from 1.2.3.4 to any out") == RuleRecord(
        200, 100, "ip", "1.2.3.4", "any", "out"
    )


def test_rule_line_mac_both_spellings():
    want = RuleRecord(300, 200, "mac", "any", "00:11:22:33:44:55", "in")
    assert parse_rule_line("00300 pipe 200 MAC 00:11:22:33:44:55 any in") == want
    assert parse_rule_line("00300 pipe 200 ip from any to any MAC 00:11:22:33:44:55 any in") == want
    # upper-case hex is folded
    assert parse_rule_line("00300 pipe 200 MAC 00:11:22:33:44:AA any in").dst == "00:11:22:33:44:aa"


def test_rule_listing_skips_unrelated_lines():
    text = (
        "00100 count ip from 0.0.0.0 to 0.0.0.0\n"
        "00200 pipe 100 ip from 1.2.3.4 to any out\n"
        "00250 allow tcp from any to any 22 in\n"
        "65534 pipe 300 ip from any to any in\n"
        "65535 allow ip from any to any\n"
    )
    recs = parse_rule_listing(text)
    assert [r.rule_id for r in recs] == [200, 65534]


def test_confirmation():
    assert parse_confirmation("00400 pipe 300 ip from 1.2.3.4 to any out\n") == 400
    with pytest.raises(BackendProtocolViolation):
        parse_confirmation("ipfw: rule added\n")
    with pytest.raises(BackendProtocolViolation):
        parse_confirmation("")
