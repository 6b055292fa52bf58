"""Tests for agentdeck.tui.selection: the picker state machine."""

import pytest

from agentdeck.tui.selection import SelectionState, SelectionTable


def table(n=25, page_size=10):
    return SelectionTable(list(range(n)), page_size=page_size)


class TestNavigation:
    def test_starts_at_top(self):
        t = table()
        assert t.index == 0
        assert t.state is SelectionState.ACTIVE

    @pytest.mark.parametrize("key", ["down", "j"])
    def test_down(self, key):
        t = table()
        assert t.handle_key(key)
        assert t.index == 1

    def test_up_clamped_at_top(self):
        t = table()
        assert not t.handle_key("up")
        assert not t.handle_key("k")
        assert t.index == 0

    def test_paging(self):
        t = table()
        t.handle_key("pagedown")
        assert t.index == 10
        t.handle_key("f")
        t.handle_key("f")
        assert t.index == 24
        t.handle_key("b")
        assert t.index == 14

    def test_home_and_end(self):
        t = table()
        t.handle_key("G")
        assert t.index == 24
        t.handle_key("g")
        assert t.index == 0
        t.handle_key("end")
        t.handle_key("home")
        assert t.index == 0

    def test_unknown_key_no_change(self):
        assert not table().handle_key("x")


class TestTermination:
    def test_confirm(self):
        t = table()
        t.handle_key("j")
        t.handle_key("enter")
        assert t.state is SelectionState.CONFIRMED
        assert t.selected == 1

    @pytest.mark.parametrize("key", ["escape", "q", "ctrl+c"])
    def test_cancel(self, key):
        t = table()
        t.handle_key(key)
        assert t.state is SelectionState.CANCELLED
        assert t.selected is None

    def test_enter_on_empty_cancels(self):
        t = table(0)
        t.handle_key("enter")
        assert t.state is SelectionState.CANCELLED
        assert t.selected is None

    def test_keys_ignored_after_done(self):
        t = table()
        t.handle_key("enter")
        assert not t.handle_key("down")
        assert not t.handle_key("escape")
        assert t.selected == 0

    def test_empty_table_navigation(self):
        t = table(0)
        assert not t.handle_key("down")
        assert not t.handle_key("G")
