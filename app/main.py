"""
Streamlit Frontend for Tá no Prego

This is the screen the shopkeeper keeps open behind the counter.

DESIGN PRINCIPLES:
1. One screen: totals, Smart Add, customer cards
2. Explicit confirmation before anything is paid or deleted
3. Clear messages in simple language
4. Every change is saved immediately

Flow:
- Login / register (one data set per shop login)
- Add customers and items by hand or with Smart Add
- Open a customer to see pending items and mark them as paid
"""

import asyncio
from uuid import UUID

import streamlit as st

from tanoprego.config import get_settings, validate_all_settings
from tanoprego.display import debtor_card_html, pop_flash, set_flash
from tanoprego.display import money as format_money
from tanoprego.ledger import LedgerError
from tanoprego.models.debtor import Debtor
from tanoprego.orchestrator import (
    AccountFlow,
    LedgerFlow,
    SmartAddFlow,
    create_app_components,
    create_store,
)
from tanoprego.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Tá no Prego!",
    page_icon="🏪",
    layout="centered",
    initial_sidebar_state="collapsed",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .debtor-card {
        padding: 16px;
        background-color: #1e293b;
        border-radius: 12px;
        border: 1px solid #334155;
        margin: 6px 0;
    }
    .debtor-initial {
        display: inline-block;
        width: 40px;
        height: 40px;
        line-height: 40px;
        text-align: center;
        border-radius: 50%;
        background-color: #334155;
        color: #e2e8f0;
        font-weight: bold;
        font-size: 1.2em;
        margin-right: 10px;
    }
    .owed {
        font-size: 1.6em;
        font-weight: bold;
        color: #f87171;
    }
    .clear {
        font-size: 1.6em;
        font-weight: bold;
        color: #4ade80;
    }
    .last-item {
        font-size: 0.8em;
        font-style: italic;
        color: #64748b;
    }
    .big-number {
        font-size: 1.8em;
        font-weight: bold;
        color: #facc15;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_store():
    """One store per process; flows are per browser session."""
    return create_store(use_storage=True)


def get_components() -> tuple[AccountFlow, LedgerFlow, SmartAddFlow]:
    if "components" not in st.session_state:
        st.session_state.components = create_app_components(store=get_store())
    return st.session_state.components


def money(amount) -> str:
    return format_money(amount, get_settings().app.currency_symbol)


def main():
    """Main application entry point."""
    account_flow, ledger_flow, smart_add_flow = get_components()

    if "selected_debtor_id" not in st.session_state:
        st.session_state.selected_debtor_id = None

    if not ledger_flow.is_open:
        render_login_page(account_flow, ledger_flow)
        return

    page = st.sidebar.radio(
        "Navegar:",
        ["🏪 Clientes", "⚙️ Configurações"],
        index=0,
    )

    if page == "⚙️ Configurações":
        render_settings_page()
        return

    render_header(ledger_flow)
    render_smart_add(smart_add_flow)

    selected = st.session_state.selected_debtor_id
    if selected is not None:
        try:
            debtor = ledger_flow.get(selected)
        except LedgerError:
            st.session_state.selected_debtor_id = None
        else:
            render_debtor_page(ledger_flow, debtor)
            return

    render_stats(ledger_flow)
    render_add_person(ledger_flow)
    render_debtor_grid(ledger_flow)


def render_login_page(account_flow: AccountFlow, ledger_flow: LedgerFlow):
    """Render the login / register screen."""
    st.title("🏪 Tá no Prego!")
    st.markdown("Gerenciador de Dívidas Empresarial")

    if "is_registering" not in st.session_state:
        st.session_state.is_registering = False

    registering = st.session_state.is_registering

    with st.form("login_form"):
        username = st.text_input(
            "Nome do Comércio (Login)",
            placeholder="ex: bar_do_ze",
        )
        password = st.text_input(
            "Senha de Acesso",
            type="password",
        )
        submitted = st.form_submit_button(
            "👤 Criar Conta" if registering else "🔑 Acessar Planilhas",
            type="primary",
        )

    if submitted:
        with st.spinner("Aguarde..."):
            try:
                if registering:
                    ok, message = run_async(account_flow.register(username, password))
                else:
                    ok, message = run_async(account_flow.login(username, password))
            except Exception as e:
                ok, message = False, f"Erro ao processar. ({e})"

        if ok:
            try:
                ledger_flow.open(AccountFlow.normalize_username(username))
            except StorageError as e:
                st.error(f"Erro ao carregar dados: {e}")
                st.stop()
            st.rerun()
        else:
            st.error(message)

    toggle_label = (
        "Já tem uma conta? Entrar" if registering
        else "Novo cliente? Registrar Comércio"
    )
    if st.button(toggle_label):
        st.session_state.is_registering = not registering
        st.rerun()

    st.caption("v2.2 • Sistema Multi-Empresas")


def render_header(ledger_flow: LedgerFlow):
    """Shop name, total receivable and logout."""
    col1, col2, col3 = st.columns([3, 2, 1])

    with col1:
        st.subheader(f"🏪 {ledger_flow.username}")
        st.caption("Tá no Prego!")

    with col2:
        st.caption("TOTAL A RECEBER")
        st.markdown(
            f'<div class="big-number">{money(ledger_flow.stats().total_owed)}</div>',
            unsafe_allow_html=True,
        )

    with col3:
        if st.button("🚪 Sair", help="Sair"):
            run_async(ledger_flow.close())
            st.session_state.selected_debtor_id = None
            st.rerun()


def render_smart_add(smart_add_flow: SmartAddFlow):
    """The AI input box."""
    flash = pop_flash(st.session_state, "smart_add_message")
    if flash:
        kind, message = flash
        if kind == "success":
            st.success(message)
        else:
            st.warning(message)

    with st.form("smart_add_form", clear_on_submit=True):
        text = st.text_input(
            "✨ IA",
            placeholder="IA: 'Matias aumentou 50 da cerveja hoje'...",
            disabled=not smart_add_flow.is_available,
        )
        submitted = st.form_submit_button("Enviar", disabled=not smart_add_flow.is_available)

    if not smart_add_flow.is_available:
        st.caption("IA desativada: configure GEMINI_API_KEY.")

    if submitted and text.strip():
        with st.spinner("Interpretando..."):
            try:
                outcome = run_async(smart_add_flow.submit(text))
            except StorageError as e:
                st.error(f"Erro ao salvar: {e}")
                return

        if outcome.success:
            message = outcome.message
            if outcome.warnings:
                message += "\n\n" + "\n".join(f"⚠️ {w}" for w in outcome.warnings)
            set_flash(st.session_state, "smart_add_message", "success", message)
        else:
            set_flash(st.session_state, "smart_add_message", "warning", outcome.message)
        st.rerun()


def render_stats(ledger_flow: LedgerFlow):
    stats = ledger_flow.stats()
    col1, col2 = st.columns(2)
    with col1:
        st.metric("👥 Clientes", stats.total_people)
    with col2:
        st.metric("📄 Itens na conta", stats.total_items)


def render_add_person(ledger_flow: LedgerFlow):
    st.markdown("### Clientes Devedores")

    with st.expander("➕ Novo Cliente"):
        with st.form("add_person_form", clear_on_submit=True):
            name = st.text_input("Nome do cliente...")
            submitted = st.form_submit_button("Adicionar", type="primary")

        if submitted and name.strip():
            try:
                run_async(ledger_flow.add_debtor(name))
                st.rerun()
            except (LedgerError, StorageError) as e:
                st.error(f"Não foi possível adicionar: {e}")


def render_debtor_card(debtor: Debtor):
    currency = get_settings().app.currency_symbol
    st.markdown(debtor_card_html(debtor, currency), unsafe_allow_html=True)


def render_debtor_grid(ledger_flow: LedgerFlow):
    debtors = ledger_flow.debtors

    if not debtors:
        st.info(
            "📄 Sua lista está vazia. "
            "Comece adicionando um cliente ou use a IA no topo."
        )
        return

    columns = st.columns(2)
    for index, debtor in enumerate(debtors):
        with columns[index % 2]:
            render_debtor_card(debtor)
            if st.button("Abrir planilha", key=f"open_{debtor.id}"):
                st.session_state.selected_debtor_id = debtor.id
                st.rerun()


def render_debtor_page(ledger_flow: LedgerFlow, debtor: Debtor):
    """Detail view of one customer's tab."""
    if st.button("⬅️ Voltar"):
        st.session_state.selected_debtor_id = None
        st.rerun()

    st.markdown(f"## {debtor.initial} · {debtor.name}")
    st.caption("Planilha de contas")

    # Quick add form
    with st.form("quick_add_form", clear_on_submit=True):
        col1, col2 = st.columns([3, 1])
        with col1:
            description = st.text_input("Descrição do Item", placeholder="Ex: Cerveja, Uber...")
        with col2:
            amount = st.number_input("Valor", min_value=0.0, step=0.01, format="%.2f")
        submitted = st.form_submit_button("➕ Adicionar")

    if submitted:
        if not description.strip() or amount <= 0:
            st.error("Preencha a descrição e um valor maior que zero.")
        else:
            try:
                run_async(ledger_flow.add_transaction(debtor.id, amount, description))
                st.rerun()
            except (LedgerError, StorageError) as e:
                st.error(f"Não foi possível adicionar: {e}")

    # Pending items
    st.markdown("#### ITENS PENDENTES")
    render_transaction_history(ledger_flow, debtor)

    # Totals and actions
    st.markdown("---")
    balance = debtor.balance
    st.markdown(f"Total Devedor: **{money(balance)}**")

    if balance > 0:
        confirm_settle = st.checkbox(
            f"Confirmar o pagamento TOTAL de {money(balance)} para {debtor.name}? "
            "Isso limpará a lista."
        )
        if st.button("✅ Quitar Tudo", type="primary", disabled=not confirm_settle):
            try:
                run_async(ledger_flow.settle_all(debtor.id))
                st.rerun()
            except (LedgerError, StorageError) as e:
                st.error(f"Não foi possível quitar: {e}")

    confirm_delete = st.checkbox("Tem certeza que deseja apagar essa pessoa e zerar a planilha?")
    if st.button("🗑️ Excluir Planilha", disabled=not confirm_delete):
        try:
            run_async(ledger_flow.delete_debtor(debtor.id))
        except (LedgerError, StorageError) as e:
            st.error(f"Não foi possível excluir: {e}")
        else:
            st.session_state.selected_debtor_id = None
            st.rerun()


def render_transaction_history(ledger_flow: LedgerFlow, debtor: Debtor):
    """Pending items, newest first, each with a pay button."""
    flash = pop_flash(st.session_state, "payment_message")
    if flash:
        st.error(flash[1])

    transactions = debtor.sorted_transactions()

    if not transactions:
        st.info("Nenhum item pendente. A planilha está limpa!")
        return

    header = st.columns([2, 4, 2, 1])
    header[0].markdown("**Data**")
    header[1].markdown("**Descrição**")
    header[2].markdown("**Valor**")
    header[3].markdown("**Pagar**")

    for transaction in transactions:
        row = st.columns([2, 4, 2, 1])
        row[0].write(transaction.date.astimezone().strftime("%d/%m/%Y"))
        row[1].write(transaction.description)
        row[2].write(money(transaction.signed_amount))
        if row[3].button("✔️", key=f"pay_{transaction.id}", help="Marcar como Pago (Remover)"):
            st.session_state.pending_payment = (debtor.id, transaction.id)

    pending = st.session_state.get("pending_payment")
    if pending and pending[0] == debtor.id:
        debtor_id, transaction_id = pending
        st.warning("Confirmar pagamento deste item? Ele será removido da lista.")
        col1, col2 = st.columns(2)
        if col1.button("Confirmar", type="primary"):
            try:
                run_async(ledger_flow.mark_paid(UUID(str(debtor_id)), UUID(str(transaction_id))))
            except (LedgerError, StorageError) as e:
                set_flash(
                    st.session_state, "payment_message", "error",
                    f"Não foi possível registrar o pagamento: {e}",
                )
            st.session_state.pending_payment = None
            st.rerun()
        if col2.button("Cancelar"):
            st.session_state.pending_payment = None
            st.rerun()

    st.markdown(f"**TOTAL:** {money(debtor.balance)}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Configurações")

    st.markdown("### Status")

    status = validate_all_settings()

    services = [
        ("Gemini (IA)", "gemini"),
        ("Armazenamento local", "storage"),
        ("Aplicativo", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Não configurado")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Para configurar o aplicativo, crie um arquivo `.env` com as variáveis. "
        "Veja `.env.example`."
    )


if __name__ == "__main__":
    main()
