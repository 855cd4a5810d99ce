from datetime import datetime, timedelta

from healthwatch.services.maintenance import NO_WINDOW, MaintenanceWindow, is_in_window, is_suppressed

NOW = datetime(2026, 2, 7, 0, 0, 0)
HOUR = timedelta(hours=1)


def test_start_only_window_is_active_after_start():
    assert is_in_window(NOW, NOW - timedelta(days=1), None) is True
    assert is_in_window(NOW, NOW + timedelta(days=1), None) is False


def test_window_without_start_is_inactive():
    assert is_in_window(NOW, None, None) is False
    assert is_in_window(NOW, None, NOW + HOUR) is False


def test_bounded_window_includes_both_edges():
    start, end = NOW - HOUR, NOW + HOUR
    assert is_in_window(start, start, end) is True
    assert is_in_window(end, start, end) is True
    assert is_in_window(end + timedelta(seconds=1), start, end) is False


def test_future_window_is_inactive():
    window = MaintenanceWindow(start=NOW + HOUR, end=NOW + 2 * HOUR)
    assert window.is_active(NOW) is False


def test_open_ended_window_stays_active_until_cleared():
    window = MaintenanceWindow(start=NOW - HOUR, end=None)
    for later in (NOW, NOW + timedelta(days=30), NOW + timedelta(days=3650)):
        assert is_suppressed(window, NO_WINDOW, later) is True

    assert is_suppressed(NO_WINDOW, NO_WINDOW, NOW + timedelta(days=30)) is False


def test_group_window_overrides_device_window():
    group_window = MaintenanceWindow(start=NOW - timedelta(days=1), end=NOW + timedelta(days=1))
    future_device_window = MaintenanceWindow(start=NOW + timedelta(days=5))
    assert is_suppressed(future_device_window, group_window, NOW) is True
    assert is_suppressed(NO_WINDOW, group_window, NOW) is True


def test_device_window_applies_when_group_window_inactive():
    device_window = MaintenanceWindow(start=NOW - timedelta(days=1), end=NOW + timedelta(days=1))
    expired_group_window = MaintenanceWindow(start=NOW - timedelta(days=3), end=NOW - timedelta(days=2))
    assert is_suppressed(device_window, expired_group_window, NOW) is True
    assert is_suppressed(NO_WINDOW, expired_group_window, NOW) is False
