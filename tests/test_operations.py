"""Tests for queue operations and the draining adapter."""

import threading

import pytest

from broker_service.engine.cursor import DrainPolicy
from broker_service.engine.operations import DrainingAdapter, Strategy, delete, list_messages, purge
from broker_service.errors import (
    DrainFailedError,
    ManagementUnavailableError,
    MessageNotFoundError,
    OperationCancelledError,
    PublishFailedError,
    SettleError,
)
from fakes import FakeMessage, FakeTransport


@pytest.fixture(params=[True, False], ids=["early-release", "no-early-release"])
def adapter(request, broker, policy):
    """Create a DrainingAdapter over the fake broker, with and without early release."""
    transport = FakeTransport(broker, supports_early_release=request.param)
    return DrainingAdapter("fake", transport, policy)


class TestStrategyChoice:
    """Test which strategy single-item operations use."""

    def test_early_release_uses_scan(self, broker, policy):
        """Transports that release without reordering use scan-and-act."""
        adapter = DrainingAdapter("fake", FakeTransport(broker, True), policy)
        assert adapter.single_item_strategy is Strategy.SCAN_AND_ACT

    def test_no_early_release_uses_map(self, broker, policy):
        """Transports that requeue at the head use map-then-act."""
        adapter = DrainingAdapter("fake", FakeTransport(broker, False), policy)
        assert adapter.single_item_strategy is Strategy.MAP_THEN_ACT


class TestListMessages:
    """Test message enumeration."""

    def test_projects_every_message(self, adapter):
        """Listing should return a StandardMessage per queued message."""
        messages = adapter.get_all_messages("Q")

        assert [message.id for message in messages] == ["m1", "m2", "m3"]
        assert messages[0].body == "one"
        assert messages[0].headers == {"Correlation ID": "c1"}

    def test_is_non_destructive(self, adapter, broker):
        """Repeated listing should leave the queue count unchanged."""
        adapter.get_all_messages("Q")
        second = adapter.get_all_messages("Q")

        assert len(second) == 3
        assert len(broker.queues["Q"]) == 3

    def test_empty_queue(self, adapter):
        """Listing an empty queue should return an empty list."""
        assert adapter.get_all_messages("EMPTY") == []

    def test_stops_at_enumeration_limit(self, broker, policy):
        """No more than the enumeration limit should be drained."""
        transport = FakeTransport(broker)
        limited = DrainPolicy(receive_timeout=0.01, enumeration_limit=2)

        messages = list_messages(transport, "Q", limited)

        assert len(messages) == 2
        assert len(broker.queues["Q"]) == 3

    def test_does_not_need_census(self, broker, policy):
        """Listing should work while the management surface is down."""
        broker.management_down = True

        messages = list_messages(FakeTransport(broker), "Q", policy)

        assert len(messages) == 3

    def test_cancelled_listing_returns_partial_result(self, broker, policy):
        """A pre-set cancel event should end the listing immediately."""
        cancel = threading.Event()
        cancel.set()

        assert list_messages(FakeTransport(broker), "Q", policy, cancel) == []
        assert len(broker.queues["Q"]) == 3

    def test_receivers_are_closed(self, adapter, broker):
        """The receiver should be closed after the operation."""
        adapter.get_all_messages("Q")

        assert all(receiver.closed for receiver in broker.receivers)


class TestPurge:
    """Test purge."""

    def test_purge_then_list_is_empty(self, adapter, broker):
        """Purging a 5-message queue should leave nothing to list."""
        broker.put("Q", FakeMessage("m4"), FakeMessage("m5"))

        adapter.purge("Q")

        assert adapter.get_all_messages("Q") == []

    def test_purge_is_bounded_by_census(self, broker, policy):
        """Purge should drain no more than the census count."""
        broker.census_override = 2

        purged = purge(FakeTransport(broker), "Q", policy)

        assert purged == 2
        assert broker.ids("Q") == ["m3"]

    def test_purge_without_census_fails(self, adapter, broker):
        """Purge should fail when the census cannot be taken."""
        broker.management_down = True

        with pytest.raises(ManagementUnavailableError):
            adapter.purge("Q")

        assert len(broker.queues["Q"]) == 3

    def test_refused_removal_propagates(self, adapter, broker):
        """A refused removal should abort the purge and return held messages."""
        broker.refuse_accept.add("m2")

        with pytest.raises(SettleError):
            adapter.purge("Q")

        assert sorted(broker.ids("Q")) == ["m2", "m3"]

    def test_drain_failure_propagates(self, adapter, broker):
        """Purge should raise when the drain fails."""
        broker.census_override = 10
        broker.receive_failures = 100

        with pytest.raises(DrainFailedError):
            adapter.purge("Q")

    def test_cancelled_purge_raises(self, adapter, broker):
        """A purge cut short by its deadline should not look like a completed purge."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledError) as exc_info:
            adapter.purge("Q", cancel=cancel)

        assert exc_info.value.queue == "Q"
        assert sorted(broker.ids("Q")) == ["m1", "m2", "m3"]


class TestDelete:
    """Test delete-one and delete-many."""

    def test_delete_one(self, adapter, broker):
        """delete_one should remove exactly the target."""
        adapter.delete_one("Q", "m2")

        assert sorted(broker.ids("Q")) == ["m1", "m3"]

    def test_delete_one_missing_is_silent(self, adapter, broker):
        """An ID never observed should not raise by default."""
        adapter.delete_one("Q", "m9")

        assert sorted(broker.ids("Q")) == ["m1", "m2", "m3"]

    def test_delete_one_missing_reported_when_strict(self, broker, policy):
        """With report_missing the absent ID should raise MessageNotFoundError."""
        adapter = DrainingAdapter("fake", FakeTransport(broker), policy, report_missing=True)

        with pytest.raises(MessageNotFoundError) as exc_info:
            adapter.delete_one("Q", "m9")

        assert exc_info.value.message_id == "m9"

    def test_delete_one_cancelled_raises(self, adapter, broker):
        """A cancelled delete_one raises even when missing IDs are not reported."""
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledError):
            adapter.delete_one("Q", "m2", cancel=cancel)

        assert sorted(broker.ids("Q")) == ["m1", "m2", "m3"]

    def test_delete_many_cancelled(self, adapter, broker):
        """A cancelled delete_many returns one cancellation error, not a not-found per ID."""
        cancel = threading.Event()
        cancel.set()

        errors = adapter.delete_many("Q", ["m1", "m2"], cancel=cancel)

        assert [type(error) for error in errors] == [OperationCancelledError]

    def test_delete_one_refused_raises(self, adapter, broker):
        """A refused removal should raise from delete_one."""
        broker.refuse_accept.add("m1")

        with pytest.raises(SettleError):
            adapter.delete_one("Q", "m1")

    def test_delete_many_reports_only_missing(self, adapter, broker):
        """DeleteMany(["m1", "m4"]) should remove m1 and report m4."""
        errors = adapter.delete_many("Q", ["m1", "m4"])

        assert len(errors) == 1
        assert isinstance(errors[0], MessageNotFoundError)
        assert errors[0].message_id == "m4"
        assert sorted(broker.ids("Q")) == ["m2", "m3"]

    def test_delete_many_all(self, adapter, broker):
        """Deleting every ID should empty the queue."""
        assert adapter.delete_many("Q", ["m3", "m1", "m2"]) == []
        assert broker.ids("Q") == []

    def test_delete_many_fatal_error_is_returned(self, adapter, broker):
        """A failure before the drain should come back as the only error."""
        broker.management_down = True

        errors = adapter.delete_many("Q", ["m1"])

        assert len(errors) == 1
        assert isinstance(errors[0], ManagementUnavailableError)
        assert len(broker.queues["Q"]) == 3

    def test_delete_uses_requested_strategy(self, broker, policy):
        """delete() should honour the strategy argument."""
        errors = delete(FakeTransport(broker), "Q", ["m1"], policy, Strategy.MAP_THEN_ACT)

        assert errors == []
        assert sorted(broker.ids("Q")) == ["m2", "m3"]


class TestMove:
    """Test move-one and move-many."""

    def test_move_one_scenario(self, adapter, broker):
        """MoveOne(Q, Q2, m2) should relocate m2 with its content intact."""
        adapter.move_one("Q", "Q2", "m2")

        assert list(broker.queues["Q2"]) == [FakeMessage("m2", body="two", correlation_id="c2")]
        assert sorted(broker.ids("Q")) == ["m1", "m3"]

    def test_move_one_missing_leaves_both_queues(self, adapter, broker):
        """Moving an absent ID should change neither queue."""
        adapter.move_one("Q", "Q2", "m9")

        assert sorted(broker.ids("Q")) == ["m1", "m2", "m3"]
        assert broker.ids("Q2") == []

    def test_move_one_publish_failure_keeps_source(self, adapter, broker):
        """A rejected publish should leave the original in the source."""
        broker.reject_publish_to.add("Q2")

        with pytest.raises(PublishFailedError):
            adapter.move_one("Q", "Q2", "m2")

        assert sorted(broker.ids("Q")) == ["m1", "m2", "m3"]
        assert broker.ids("Q2") == []

    def test_move_many(self, adapter, broker):
        """move() should relocate the found targets and report the rest."""
        errors = adapter.move("Q", "Q2", ["m3", "m9", "m1"])

        assert [error.message_id for error in errors] == ["m9"]
        assert broker.ids("Q2") == ["m3", "m1"]
        assert broker.ids("Q") == ["m2"]

    def test_move_many_publish_failures(self, adapter, broker):
        """Every rejected publish should be reported and its original kept."""
        broker.reject_publish_to.add("Q2")

        errors = adapter.move("Q", "Q2", ["m1", "m2"])

        assert [type(error) for error in errors] == [PublishFailedError, PublishFailedError]
        assert sorted(broker.ids("Q")) == ["m1", "m2", "m3"]

    def test_sender_and_receiver_closed(self, adapter, broker):
        """Both links should be closed once the move completes."""
        adapter.move("Q", "Q2", ["m1"])

        assert all(sender.closed for sender in broker.senders)
        assert all(receiver.closed for receiver in broker.receivers)


class TestAdapterClose:
    """Test adapter shutdown."""

    def test_close_closes_transport(self, broker, policy):
        """close() should close the underlying transport."""
        transport = FakeTransport(broker)
        DrainingAdapter("fake", transport, policy).close()

        assert transport.closed is True

    def test_get_all_queues_uses_management(self, adapter):
        """Queue listing should come from the transport's management surface."""
        queues = adapter.get_all_queues()

        assert [queue.name for queue in queues] == ["Q"]
        assert queues[0].info == {"Size": "3"}
