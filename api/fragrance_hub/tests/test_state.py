from fragrance_hub.state import AppState, NotificationCenter
from fragrance_hub.tests.factories import make_product


def _stock_levels():
    return [
        make_product(1, current_stock=0),
        make_product(2, current_stock=3),
        make_product(3, current_stock=8),
        make_product(4, current_stock=30),
    ]


def test_refresh_creates_one_notification_per_condition():
    center = NotificationCenter()
    created = center.refresh(_stock_levels())
    by_type = {n.type: n for n in created}
    assert set(by_type) == {"out_of_stock", "low_stock", "reorder_point"}
    assert by_type["out_of_stock"].priority == "critical"
    assert by_type["low_stock"].priority == "high"
    assert by_type["reorder_point"].priority == "medium"
    assert by_type["reorder_point"].entity_id == "3"
    assert center.unread_count() == 3


def test_refresh_skips_products_with_unread_notification():
    center = NotificationCenter()
    center.refresh(_stock_levels())
    assert center.refresh(_stock_levels()) == []
    assert len(center.notifications) == 3


def test_read_notifications_do_not_block_new_ones():
    center = NotificationCenter()
    center.refresh(_stock_levels())
    out = next(n for n in center.notifications if n.type == "out_of_stock")
    assert center.mark_read(out.id)
    assert center.unread_count() == 2

    created = center.refresh(_stock_levels())
    assert [n.type for n in created] == ["out_of_stock"]


def test_mark_all_delete_and_clear():
    center = NotificationCenter()
    center.refresh(_stock_levels())
    center.mark_all_read()
    assert center.unread_count() == 0

    first = center.notifications[0]
    assert center.delete(first.id)
    assert not center.delete(first.id)
    assert not center.mark_read("missing")
    assert len(center.notifications) == 2

    center.clear()
    assert center.notifications == []


def test_sessions_are_per_user_and_torn_down_on_logout():
    state = AppState()
    a = state.open_session({"id": "u-1", "username": "amina"})
    state.open_session({"id": "u-2", "username": "baraka"})
    a.notifications.refresh(_stock_levels())

    assert state.get_session("u-2").notifications.unread_count() == 0
    assert state.open_session({"id": "u-1", "username": "amina"}) is a

    assert state.close_session("u-1")
    assert a.notifications.notifications == []
    assert state.get_session("u-1") is None
    assert not state.close_session("u-1")

    state.clear()
    assert state.sessions == {}
