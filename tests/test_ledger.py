"""Tests for the settlement engine."""

from datetime import date
from decimal import Decimal

import pytest

from rupiq_ledger.exceptions import LedgerValidationError
from rupiq_ledger.ledger import (
    build_settlement_event,
    compute_friend_balances,
    distribute_shares_equally,
    format_currency,
    summarize_balances,
    validate_event,
)
from rupiq_ledger.models import (
    FriendBalance,
    LedgerEvent,
    Participant,
    SettlementOrigin,
)


# Helper function for tests
def make_event(
    id: str,
    friends: list[tuple[str, str, str]],
    owner_share: str = "0",
    owner_paid: str = "0",
) -> LedgerEvent:
    """Create a ledger event from (name, share, paid) friend tuples."""
    participants = [
        Participant(name="Me", share=Decimal(owner_share), paid=Decimal(owner_paid), is_owner=True)
    ]
    participants += [
        Participant(name=name, share=Decimal(share), paid=Decimal(paid))
        for name, share, paid in friends
    ]
    total = sum((p.paid for p in participants), Decimal("0"))
    return LedgerEvent(
        id=id,
        description=f"Test event {id}",
        date=date(2025, 1, 15),
        total_amount=total if total > 0 else Decimal("1"),
        paid_by="Me",
        participants=participants,
    )


def balance_of(balances: list[FriendBalance], name: str) -> Decimal | None:
    for fb in balances:
        if fb.name == name:
            return fb.balance
    return None


class TestComputeFriendBalances:
    """Tests for compute_friend_balances."""

    def test_friend_who_has_not_paid_owes_owner(self):
        """Owner fronted 1000, Alice's share is 400: Alice owes 400."""
        events = [
            make_event("1", [("Alice", "400", "0")], owner_share="600", owner_paid="1000")
        ]

        balances = compute_friend_balances(events)

        assert len(balances) == 1
        assert balances[0].name == "Alice"
        assert balances[0].balance == Decimal("-400")

    def test_balances_net_across_events(self):
        """Bob owes 200 on one event and overpaid 200 on another: owner owes Bob 100."""
        events = [
            make_event("a", [("Bob", "200", "0")], owner_share="0", owner_paid="200"),
            make_event("b", [("Bob", "100", "300")], owner_share="200", owner_paid="0"),
        ]

        balances = compute_friend_balances(events)

        assert balance_of(balances, "Bob") == Decimal("100")

    def test_owner_excluded_by_flag_not_name(self):
        """A friend literally named 'me' is still a friend."""
        events = [
            make_event("1", [("me", "50", "0")], owner_share="50", owner_paid="100")
        ]

        balances = compute_friend_balances(events)

        assert [fb.name for fb in balances] == ["me"]
        assert balances[0].balance == Decimal("-50")

    def test_grouping_is_case_sensitive(self):
        """Differently cased names are different friends."""
        events = [
            make_event(
                "1",
                [("Alice", "10", "0"), ("alice", "20", "0")],
                owner_share="0",
                owner_paid="30",
            )
        ]

        balances = compute_friend_balances(events)

        assert balance_of(balances, "Alice") == Decimal("-10")
        assert balance_of(balances, "alice") == Decimal("-20")

    def test_order_of_first_appearance(self):
        """Friends are listed in the order they first appear."""
        events = [
            make_event("1", [("Carol", "10", "0"), ("Alice", "10", "0")], owner_paid="20"),
            make_event("2", [("Bob", "10", "0"), ("Carol", "5", "0")], owner_paid="15"),
        ]

        balances = compute_friend_balances(events)

        assert [fb.name for fb in balances] == ["Carol", "Alice", "Bob"]

    def test_balance_below_tolerance_is_settled(self):
        """A balance of 0.004 is treated as settled."""
        events = [make_event("1", [("Dan", "0", "0.004")], owner_share="0.004")]

        assert compute_friend_balances(events) == []

    def test_balance_above_tolerance_is_shown(self):
        """A balance of 0.006 is outstanding."""
        events = [make_event("1", [("Dan", "0", "0.006")], owner_share="0.006")]

        balances = compute_friend_balances(events)

        assert balance_of(balances, "Dan") == Decimal("0.006")

    def test_empty_ledger(self):
        """No events means no balances."""
        assert compute_friend_balances([]) == []

    def test_balance_conservation(self):
        """Sum of balances equals the linear sum of non-owner paid minus share."""
        events = [
            make_event("1", [("A", "30", "0"), ("B", "20", "70")], owner_share="20"),
            make_event("2", [("A", "15", "45"), ("C", "25", "0")], owner_share="5"),
            make_event("3", [("B", "12.5", "0"), ("C", "7.25", "40")], owner_share="20.25"),
        ]

        expected = sum(
            (
                p.paid - p.share
                for event in events
                for p in event.participants
                if not p.is_owner
            ),
            Decimal("0"),
        )
        total = sum((fb.balance for fb in compute_friend_balances(events)), Decimal("0"))

        assert total == expected

    def test_order_independent_values(self):
        """Reversing the event order does not change any balance."""
        events = [
            make_event("1", [("A", "30", "0"), ("B", "20", "70")], owner_share="20"),
            make_event("2", [("A", "15", "45"), ("B", "25", "0")], owner_share="5"),
        ]

        forward = {fb.name: fb.balance for fb in compute_friend_balances(events)}
        backward = {fb.name: fb.balance for fb in compute_friend_balances(events[::-1])}

        assert forward == backward


class TestSummarizeBalances:
    """Tests for summarize_balances totals."""

    def test_totals_split_by_direction(self):
        """Positive balances add to owed-by-owner, negative ones to owed-to-owner."""
        events = [
            make_event("1", [("Alice", "400", "0")], owner_share="600", owner_paid="1000"),
            make_event("2", [("Bob", "0", "150"), ("Carol", "50", "0")], owner_share="100"),
        ]

        summary = summarize_balances(events)

        assert summary.total_owed_by_owner == Decimal("150")
        assert summary.total_owed_to_owner == Decimal("450")

    def test_empty_totals_are_zero(self):
        summary = summarize_balances([])

        assert summary.balances == []
        assert summary.total_owed_by_owner == 0
        assert summary.total_owed_to_owner == 0


class TestBuildSettlementEvent:
    """Tests for build_settlement_event."""

    def test_friend_owes_owner(self):
        """Alice owes 400: she pays the owner back."""
        friend = FriendBalance(name="Alice", balance=Decimal("-400"))

        event = build_settlement_event(friend, date(2025, 2, 1))

        assert event.paid_by == "Alice"
        assert event.total_amount == Decimal("400")
        assert event.date == date(2025, 2, 1)
        alice, me = event.participants
        assert (alice.name, alice.share, alice.paid, alice.is_owner) == (
            "Alice",
            Decimal("0"),
            Decimal("400"),
            False,
        )
        assert (me.name, me.share, me.paid, me.is_owner) == (
            "Me",
            Decimal("400"),
            Decimal("0"),
            True,
        )

    def test_owner_owes_friend(self):
        """Owner owes Bob 100: the owner pays Bob."""
        friend = FriendBalance(name="Bob", balance=Decimal("100"))

        event = build_settlement_event(friend, date(2025, 2, 1))

        assert event.paid_by == "Me"
        bob, me = event.participants
        assert (bob.share, bob.paid) == (Decimal("100"), Decimal("0"))
        assert (me.share, me.paid) == (Decimal("0"), Decimal("100"))
        assert me.is_owner

    def test_settlement_clears_balance(self):
        """Appending the settlement removes Alice from the balances."""
        events = [
            make_event("1", [("Alice", "400", "0")], owner_share="600", owner_paid="1000")
        ]
        friend = compute_friend_balances(events)[0]

        events.append(build_settlement_event(friend, date(2025, 2, 1)))

        assert compute_friend_balances(events) == []

    def test_settlement_only_clears_that_friend(self):
        """Other friends' balances are untouched by a settlement."""
        events = [
            make_event(
                "1",
                [("Alice", "400", "0"), ("Bob", "100", "0")],
                owner_share="500",
                owner_paid="1000",
            )
        ]
        alice = balance_of(compute_friend_balances(events), "Alice")
        events.append(
            build_settlement_event(FriendBalance(name="Alice", balance=alice), date.today())
        )

        balances = compute_friend_balances(events)

        assert [fb.name for fb in balances] == ["Bob"]
        assert balances[0].balance == Decimal("-100")

    def test_settlement_metadata(self):
        """Settlements carry a settlement origin, prefixed id and readable description."""
        friend = FriendBalance(name="Alice", balance=Decimal("-1234.5"))

        event = build_settlement_event(friend, date(2025, 2, 1), currency="₹")

        assert event.id.startswith("settlement-")
        assert isinstance(event.origin, SettlementOrigin)
        assert event.is_settlement
        assert event.description == "Settlement: Alice paid ₹1,234.50 to Me"

    def test_ids_are_unique(self):
        friend = FriendBalance(name="Alice", balance=Decimal("-10"))

        first = build_settlement_event(friend, date.today())
        second = build_settlement_event(friend, date.today())

        assert first.id != second.id

    def test_custom_owner_name(self):
        friend = FriendBalance(name="Bob", balance=Decimal("20"))

        event = build_settlement_event(friend, date.today(), owner_name="Priya")

        assert event.paid_by == "Priya"
        assert event.description.startswith("Settlement: Priya paid")


class TestValidateEvent:
    """Tests for manual event validation."""

    def _participants(self, me_share="50", me_paid="100", friend_share="50", friend_paid="0"):
        return [
            Participant(name="Me", share=Decimal(me_share), paid=Decimal(me_paid), is_owner=True),
            Participant(name="Alice", share=Decimal(friend_share), paid=Decimal(friend_paid)),
        ]

    def test_valid_event_passes(self):
        validate_event(Decimal("100"), "Dinner", self._participants())

    def test_rounding_within_tolerance_passes(self):
        validate_event(Decimal("100"), "Dinner", self._participants(me_share="50.01"))

    def test_rejects_non_positive_total(self):
        with pytest.raises(LedgerValidationError, match="positive"):
            validate_event(Decimal("0"), "Dinner", self._participants())

    @pytest.mark.parametrize("total", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_rejects_non_finite_total(self, total):
        with pytest.raises(LedgerValidationError, match="positive"):
            validate_event(Decimal(total), "Dinner", self._participants())

    @pytest.mark.parametrize("field", ["share", "paid"])
    def test_rejects_non_finite_participant_amounts(self, field):
        participants = self._participants()
        values = {"name": "Bob", "share": Decimal("0"), "paid": Decimal("0")}
        values[field] = Decimal("NaN")
        participants.append(Participant.model_construct(is_owner=False, **values))

        with pytest.raises(LedgerValidationError, match="valid numbers"):
            validate_event(Decimal("100"), "Dinner", participants)

    def test_rejects_blank_description(self):
        with pytest.raises(LedgerValidationError, match="Description"):
            validate_event(Decimal("100"), "   ", self._participants())

    def test_rejects_blank_participant_name(self):
        participants = self._participants()
        participants[1].name = " "

        with pytest.raises(LedgerValidationError, match="names"):
            validate_event(Decimal("100"), "Dinner", participants)

    def test_rejects_share_mismatch(self):
        with pytest.raises(LedgerValidationError, match="Sum of shares"):
            validate_event(Decimal("100"), "Dinner", self._participants(me_share="40"))

    def test_rejects_paid_mismatch(self):
        with pytest.raises(LedgerValidationError, match="Sum of amounts paid"):
            validate_event(Decimal("100"), "Dinner", self._participants(me_paid="90"))


class TestDistributeSharesEqually:
    """Tests for equal share distribution."""

    def test_last_participant_absorbs_rounding(self):
        participants = [Participant(name=n) for n in ("Me", "Alice", "Bob")]

        updated = distribute_shares_equally(Decimal("100"), participants)

        assert [p.share for p in updated] == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert sum(p.share for p in updated) == Decimal("100")

    def test_does_not_mutate_input(self):
        participants = [Participant(name="Me"), Participant(name="Alice")]

        distribute_shares_equally(Decimal("50"), participants)

        assert all(p.share == 0 for p in participants)

    def test_zero_total_leaves_shares(self):
        participants = [Participant(name="Me", share=Decimal("5"))]

        updated = distribute_shares_equally(Decimal("0"), participants)

        assert updated[0].share == Decimal("5")


def test_format_currency():
    assert format_currency(Decimal("1234.5")) == "₹1,234.50"
    assert format_currency(Decimal("0.005"), "$") == "$0.01"
