"""
Display helpers for the Streamlit UI.

Customer names and item descriptions come from the keyboard or from the
AI, so they are always HTML-escaped before going into a card.
"""

from collections.abc import MutableMapping
from decimal import Decimal
from html import escape
from typing import Optional

from tanoprego.models.debtor import Debtor


def money(amount: Decimal, currency: str = "R$") -> str:
    return f"{currency} {amount:,.2f}"


def debtor_card_html(debtor: Debtor, currency: str = "R$") -> str:
    """Card shown in the customer grid: initial, name, item count, balance, last item."""
    balance = debtor.balance
    amount_class = "owed" if balance > 0 else "clear"

    last = debtor.last_transaction
    last_html = ""
    if last:
        last_html = (
            f'<div class="last-item">Último: {escape(last.description)} '
            f'({last.date.astimezone().strftime("%d/%m/%Y")})</div>'
        )

    return f"""
    <div class="debtor-card">
        <span class="debtor-initial">{escape(debtor.initial)}</span>
        <strong>{escape(debtor.name)}</strong>
        <span class="last-item">{debtor.item_count} registros</span>
        <div>Saldo Devedor</div>
        <div class="{amount_class}">{money(abs(balance), currency)}</div>
        {last_html}
    </div>
    """


def set_flash(state: MutableMapping, key: str, kind: str, message: str) -> None:
    """Keep a message across st.rerun(); state is st.session_state."""
    state[key] = (kind, message)


def pop_flash(state: MutableMapping, key: str) -> Optional[tuple[str, str]]:
    """Take the pending message, if any, so it is shown exactly once."""
    return state.pop(key, None)
