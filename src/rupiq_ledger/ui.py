"""Interactive UI components for settling up with friends."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .ledger import format_currency
from .models import FriendBalance

logger = logging.getLogger(__name__)


def describe_balance(friend: FriendBalance, currency: str = "₹") -> str:
    """Human-readable direction of a friend balance."""
    amount = format_currency(abs(friend.balance), currency)
    if friend.balance > 0:
        return f"You owe {friend.name} {amount}"
    return f"{friend.name} owes you {amount}"


class FriendCompleter(Completer):
    """Fuzzy search completer for friends with outstanding balances."""

    def __init__(self, balances: list[FriendBalance]):
        """Initialize the completer with outstanding balances."""
        self.by_name = {fb.name: fb for fb in balances}

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for name, friend in self.by_name.items():
            if not query or self._fuzzy_match(query, name.lower()):
                yield Completion(
                    text=name,
                    start_position=-len(document.text),
                    display=name,
                    display_meta=describe_balance(friend),
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="al" matches "Alice"
            query="bb" matches "Bobby"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def select_friend_interactive(balances: list[FriendBalance]) -> FriendBalance | None:
    """
    Interactive friend selection with fuzzy search.

    Args:
        balances: Outstanding friend balances

    Returns:
        The selected balance, or None to cancel
    """
    if not balances:
        return None

    print("\n🤝 Settle up with whom?")
    print("   Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    completer = FriendCompleter(balances)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt("Friend: ", complete_while_typing=True)

            if not result:
                return None

            friend = completer.by_name.get(result)
            if friend:
                logger.info(f"User selected friend: {friend.name}")
                return friend

            print("❌ Unknown friend. Please select from the list or press Tab.")

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None


def confirm_settlement(friend: FriendBalance, currency: str = "₹") -> bool:
    """
    Simple yes/no confirmation before recording a settlement.

    Returns:
        True if confirmed, False otherwise
    """
    print(f"\n💸 {describe_balance(friend, currency)}.")
    print("   Marking this as settled records a transaction clearing the balance.")

    response = input("   Confirm? [Y/n] ").strip().lower()

    return response in ("", "y", "yes")
