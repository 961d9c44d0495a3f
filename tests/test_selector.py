"""
Unit tests for preferred-target selection.
"""

from lan_locator.discovery.selector import SubnetSelector, select_preferred_address
from lan_locator.events import EventBus, EventType


class TestSelectPreferredAddress:
    """Ranking rules."""

    def test_same_subnet_wins(self):
        known = ["8.8.8.8", "10.0.0.5", "192.168.1.20"]
        assert select_preferred_address(known, "192.168.1.7") == "192.168.1.20"

    def test_public_relay_when_no_subnet_match(self):
        known = ["10.0.0.5", "8.8.8.8"]
        assert select_preferred_address(known, "192.168.1.7") == "8.8.8.8"

    def test_first_address_as_last_resort(self):
        known = ["10.0.0.5", "172.16.0.9"]
        assert select_preferred_address(known, "192.168.1.7") == "10.0.0.5"

    def test_no_own_address(self):
        assert select_preferred_address(["10.0.0.5", "8.8.4.4"], None) == "8.8.4.4"

    def test_invalid_entries_ignored(self):
        assert select_preferred_address(["bogus", "", "10.0.0.5"], None) == "10.0.0.5"
        assert select_preferred_address([], "10.0.0.1") is None


class TestSubnetSelector:
    """Change notification."""

    def test_reports_only_changes(self):
        changes = []
        selector = SubnetSelector(on_change=changes.append)

        assert selector.update(known=["10.0.0.5", "192.168.1.20"]) == "10.0.0.5"
        assert selector.update(known=["10.0.0.5", "192.168.1.20"]) is None
        assert selector.update(own_address="192.168.1.7") == "192.168.1.20"
        assert changes == ["10.0.0.5", "192.168.1.20"]
        assert selector.current == "192.168.1.20"

    def test_emits_target_selected(self):
        bus = EventBus()
        selected = []
        bus.subscribe(EventType.TARGET_SELECTED, lambda e: selected.append(e.data["address"]))

        selector = SubnetSelector(bus=bus)
        selector.update(known=["10.0.0.5"], own_address="10.0.0.9")
        selector.update(known=[])

        assert selected == ["10.0.0.5", None]
