import time

from robovision.timer import high_resolution_count, high_resolution_time


def test_time_is_non_negative_and_monotonic():
    first = high_resolution_time()
    second = high_resolution_time()
    assert first >= 0.0
    assert second >= first


def test_time_measures_sleep():
    start = high_resolution_time()
    time.sleep(0.02)
    elapsed = high_resolution_time() - start
    assert elapsed >= 0.015


def test_count_fits_in_32_bits():
    count = high_resolution_count()
    assert 0 <= count <= 0xFFFFFFFF


def test_count_advances_in_tenth_microseconds():
    first = high_resolution_count()
    time.sleep(0.01)
    second = high_resolution_count()
    delta = (second - first) % (1 << 32)
    assert delta >= 50_000