import os

import pytest

from gpiouapi.uapi import ChangeType
from gpiouapi.uapi_v2 import (
    LineAttribute,
    LineAttributeID,
    LineConfig,
    LineConfigAttribute,
    LineEvent,
    LineEventID,
    LineFlagV2,
    LineInfoChangedV2,
    LineInfoV2,
    LineRequest,
    LineValues,
    bitmap_get,
    bitmap_set,
    decode_debounce,
    decode_output_values,
    encode_debounce,
    encode_output_values,
    new_line_bit_mask,
    new_line_bitmap,
    new_line_bits,
    read_line_event,
    read_line_info_changed_v2,
)


def test_line_attribute():
    la = LineAttribute.encode32(1, 1000000)
    assert la.id == 1
    assert la.padding == 0
    assert la.value32() == 1000000

    la = LineAttribute.encode64(2, 200000000000)
    assert la.id == 2
    assert la.padding == 0
    assert la.value64() == 200000000000


def test_line_attribute_bad_value_length():
    with pytest.raises(ValueError):
        LineAttribute(1, b"\x00" * 4)


def test_line_attribute_round_trip():
    la = LineAttribute.encode64(LineAttributeID.OUTPUT_VALUES, 0x1234)
    data = la.to_bytes()
    assert len(data) == 16
    assert LineAttribute.from_bytes(data) == la


def test_line_flag_v2_encode_decode():
    la = LineFlagV2(0).encode()
    assert la.id == LineAttributeID.FLAGS
    assert la.padding == 0
    assert la.value64() == 0
    la = LineAttribute.encode64(LineAttributeID.FLAGS, 42000)
    assert LineFlagV2.decode(la) == 42000

    la = LineFlagV2(1234567).encode()
    assert la.id == LineAttributeID.FLAGS
    assert la.padding == 0
    assert la.value64() == 1234567
    assert LineFlagV2.decode(la) == 1234567


def test_debounce_period():
    la = encode_debounce(0)
    assert la.id == LineAttributeID.DEBOUNCE
    assert la.padding == 0
    assert la.value32() == 0
    la = LineAttribute.encode32(LineAttributeID.DEBOUNCE, 42000)
    assert decode_debounce(la) == 42_000_000

    la = encode_debounce(1234567)
    assert la.id == LineAttributeID.DEBOUNCE
    assert la.padding == 0
    assert la.value32() == 1234
    assert decode_debounce(la) == 1_234_000


def test_output_values():
    la = encode_output_values(0)
    assert la.id == LineAttributeID.OUTPUT_VALUES
    assert la.padding == 0
    assert la.value64() == 0
    la = LineAttribute.encode64(LineAttributeID.OUTPUT_VALUES, 42234)
    assert decode_output_values(la) == 42234

    la = encode_output_values(0x123456789)
    assert la.id == LineAttributeID.OUTPUT_VALUES
    assert la.padding == 0
    assert la.value64() == 0x123456789
    assert decode_output_values(la) == 0x123456789


@pytest.mark.parametrize(
    "bits, mask",
    [
        ([0], 1),
        ([1], 2),
        ([3], 8),
        ([0, 1, 2], 7),
        ([63], 0x8000000000000000),
        ([0, 63], 0x8000000000000001),
        ([64], 0),
    ],
)
def test_new_line_bits(bits, mask):
    assert new_line_bits(*bits) == mask


@pytest.mark.parametrize(
    "values, mask",
    [
        ([0], 0),
        ([1], 1),
        ([1, 1], 3),
        ([1, 1, 1], 7),
        ([1] * 64, 0xFFFFFFFFFFFFFFFF),
        ([1] * 80, 0xFFFFFFFFFFFFFFFF),
    ],
)
def test_new_line_bitmap(values, mask):
    assert new_line_bitmap(*values) == mask


@pytest.mark.parametrize(
    "n, mask",
    [
        (0, 0),
        (1, 1),
        (2, 3),
        (3, 7),
        (64, 0xFFFFFFFFFFFFFFFF),
        (65, 0xFFFFFFFFFFFFFFFF),
    ],
)
def test_new_line_bit_mask(n, mask):
    assert new_line_bit_mask(n) == mask


def test_new_line_bit_mask_negative():
    with pytest.raises(ValueError):
        new_line_bit_mask(-1)


def test_line_bitmap():
    lb = 0
    assert bitmap_get(lb, 0) == 0
    lb = bitmap_set(lb, 2, 1)
    assert lb == 4
    assert [bitmap_get(lb, n) for n in range(3)] == [0, 0, 1]

    lb = bitmap_set(lb, 0, 1)
    assert lb == 5
    assert [bitmap_get(lb, n) for n in range(3)] == [1, 0, 1]

    lb = bitmap_set(lb, 0, 0)
    assert lb == 4
    assert [bitmap_get(lb, n) for n in range(3)] == [0, 0, 1]

    lb = bitmap_set(lb, 2, 0)
    assert bitmap_get(lb, 0) == 0
    assert lb == 0


def test_line_values_get():
    lv = LineValues(bits=new_line_bits(0, 2), mask=7)
    assert [lv.get(n) for n in range(3)] == [1, 0, 1]


def test_line_config():
    lc = LineConfig()
    assert lc.num_attrs == 0
    lc.remove_attribute_id(1)
    assert lc.num_attrs == 0
    lc.remove_attribute_id(0)
    assert lc.num_attrs == 0

    lca = LineConfigAttribute(LineAttribute(56), new_line_bit_mask(63))
    lca2 = LineConfigAttribute(LineAttribute(23), new_line_bit_mask(64))

    lc.add_attribute(lca)
    assert lc.num_attrs == 1
    lc.add_attribute(lca2)
    assert lc.num_attrs == 2
    lc.add_attribute(lca)
    assert lc.num_attrs == 3
    assert lc.attrs == [lca, lca2, lca]

    lc.remove_attribute_id(42)
    assert lc.num_attrs == 3
    lc.remove_attribute_id(56)
    assert lc.num_attrs == 1

    lc.add_attribute(lca)
    lc.add_attribute(lca)
    assert lc.num_attrs == 3
    lc.remove_attribute(lca2)
    assert lc.num_attrs == 2
    lc.remove_attribute(lca)
    assert lc.num_attrs == 0


def test_line_config_add_limited_to_ten():
    lc = LineConfig()
    for n in range(12):
        lc.add_attribute(LineConfigAttribute(LineAttribute(n), 1))
    assert lc.num_attrs == 10
    assert lc.attrs[-1].attr.id == 9


def test_line_config_round_trip():
    lc = LineConfig(
        LineFlagV2.INPUT | LineFlagV2.EDGE_BOTH,
        [LineConfigAttribute(encode_debounce(20000), 7)],
        (1, 0, 0, 0, 0),
    )
    data = lc.to_bytes()
    assert len(data) == 272
    assert LineConfig.from_bytes(data) == lc


def test_line_request_round_trip():
    lr = LineRequest(
        offsets=[1, 3],
        consumer="test",
        config=LineConfig(
            LineFlagV2.OUTPUT,
            [LineConfigAttribute(encode_output_values(new_line_bits(0, 2)), 3)],
        ),
        event_buffer_size=42,
        fd=7,
    )
    data = lr.to_bytes()
    assert len(data) == 592
    decoded = LineRequest.from_bytes(data)
    assert decoded == lr
    assert decoded.lines == 2


def test_line_request_overlength():
    with pytest.raises(ValueError):
        LineRequest(offsets=list(range(65))).to_bytes()


def test_line_info_v2_round_trip():
    li = LineInfoV2(
        name="gpio-mockup-A-3",
        consumer="testwatch",
        offset=3,
        flags=LineFlagV2.USED | LineFlagV2.INPUT,
        attrs=[encode_debounce(20000)],
    )
    data = li.to_bytes()
    assert len(data) == 256
    assert LineInfoV2.from_bytes(data) == li


def test_line_info_v2_wrong_size():
    with pytest.raises(ValueError):
        LineInfoV2.from_bytes(b"\x00" * 10)


def test_line_info_changed_v2_via_fd():
    chg = LineInfoChangedV2(
        LineInfoV2(offset=3, flags=LineFlagV2.INPUT, name="line-3"),
        123456,
        ChangeType.RELEASED,
    )
    assert len(chg.to_bytes()) == 288
    r, w = os.pipe()
    try:
        os.write(w, chg.to_bytes())
        got = read_line_info_changed_v2(r)
    finally:
        os.close(r)
        os.close(w)
    assert got == chg
    assert got.type is ChangeType.RELEASED


def test_read_line_event():
    evt = LineEvent(
        timestamp=987654321,
        id=LineEventID.FALLING_EDGE,
        offset=1,
        seqno=2,
        line_seqno=1,
    )
    assert len(evt.to_bytes()) == 48
    r, w = os.pipe()
    try:
        os.write(w, evt.to_bytes())
        got = read_line_event(r)
    finally:
        os.close(r)
        os.close(w)
    assert got == evt
    assert got.id is LineEventID.FALLING_EDGE


def test_read_line_event_short_read():
    r, w = os.pipe()
    try:
        os.write(w, b"\x01" * 10)
        os.close(w)
        with pytest.raises(EOFError):
            read_line_event(r)
    finally:
        os.close(r)


def test_line_flags_v2():
    zero = LineFlagV2(0)
    assert zero.is_available() is True
    assert zero.is_used() is False
    assert zero.is_active_low() is False
    assert zero.is_input() is False
    assert zero.is_output() is False
    assert zero.is_rising_edge() is False
    assert zero.is_falling_edge() is False
    assert zero.is_both_edges() is False
    assert zero.is_open_drain() is False
    assert zero.is_open_source() is False
    assert zero.is_bias_disabled() is False
    assert zero.is_bias_pull_up() is False
    assert zero.is_bias_pull_down() is False
    assert zero.has_realtime_event_clock() is False
    assert LineFlagV2.USED.is_available() is False
    assert LineFlagV2.USED.is_used() is True
    assert LineFlagV2.ACTIVE_LOW.is_active_low() is True
    assert LineFlagV2.INPUT.is_input() is True
    assert LineFlagV2.OUTPUT.is_output() is True
    assert LineFlagV2.EDGE_RISING.is_rising_edge() is True
    assert LineFlagV2.EDGE_FALLING.is_falling_edge() is True
    assert LineFlagV2.EDGE_BOTH.is_both_edges() is True
    assert LineFlagV2.EDGE_RISING.is_both_edges() is False
    assert LineFlagV2.EDGE_FALLING.is_both_edges() is False
    assert LineFlagV2.BIAS_DISABLED.is_bias_disabled() is True
    assert LineFlagV2.BIAS_PULL_UP.is_bias_pull_up() is True
    assert LineFlagV2.BIAS_PULL_DOWN.is_bias_pull_down() is True
    assert LineFlagV2.EVENT_CLOCK_REALTIME.has_realtime_event_clock() is True


def test_line_flag_v2_masks():
    assert LineFlagV2.DIRECTION_MASK.is_input() is True
    assert LineFlagV2.DIRECTION_MASK.is_output() is True
    assert LineFlagV2.DIRECTION_MASK.is_active_low() is False
    assert LineFlagV2.EDGE_MASK.is_both_edges() is True
    assert LineFlagV2.EDGE_MASK.is_input() is False
    assert LineFlagV2.EVENT_CLOCK_REALTIME.encode().value64() == 1 << 11
    assert LineFlagV2.DIRECTION_MASK.encode().value64() == 0b1100