"""
Streamlit Frontend for Savings Sync

The screen a user sees while saving towards their goals.

DESIGN PRINCIPLES:
1. Show the new total immediately (optimistic apply)
2. Make the three sync outcomes look different:
   - saved and confirmed
   - reverted because another device got there first
   - saved on this device only, waiting for the server
3. Never hide a pending transaction
"""

import asyncio

import streamlit as st

from savings_sync.config import get_settings, validate_all_settings
from savings_sync.manager import (
    GoalNotFoundError,
    InvalidTransactionError,
    SavingsManager,
    create_savings_manager,
)
from savings_sync.models.goal import CurrentUser, Goal, TransactionType
from savings_sync.models.sync import SyncConflicted, SyncOffline
from savings_sync.services.remote import SimulatedRemoteAuthority
from savings_sync.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Savings Goals",
    page_icon="🐷",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_manager(user_id: str) -> SavingsManager:
    """Get or create the manager for one user (cached)."""
    return create_savings_manager(CurrentUser(id=user_id))


def main():
    """Main application entry point."""
    st.sidebar.title("🐷 Savings Goals")
    st.sidebar.markdown("---")

    user_id = st.sidebar.text_input("User ID", value="demo-user").strip()
    if not user_id:
        st.warning("Enter a user ID to load your goals.")
        st.stop()

    try:
        manager = get_manager(user_id)
    except StorageError as e:
        st.error(f"Could not read your saved goals: {e}")
        st.stop()

    render_connection_controls(manager)

    page = st.sidebar.radio(
        "Navigate to:",
        ["🎯 Goals", "➕ New Goal", "⚙️ Settings"],
        index=0,
    )

    if page == "🎯 Goals":
        render_goals_page(manager)
    elif page == "➕ New Goal":
        render_new_goal_page(manager)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_connection_controls(manager: SavingsManager):
    """Offline toggle for the simulated authority."""
    remote = manager.remote
    if not isinstance(remote, SimulatedRemoteAuthority):
        return

    st.sidebar.markdown("---")
    st.sidebar.markdown("**Simulated server**")
    online = st.sidebar.toggle("Server reachable", value=remote.online)
    remote.set_online(online)


def render_new_goal_page(manager: SavingsManager):
    """Render the goal creation form."""
    st.title("➕ New Goal")

    with st.form("new_goal"):
        name = st.text_input("What are you saving for?")
        target = st.number_input("Target amount", min_value=0.01, value=500.00, step=10.0)
        currency = st.text_input("Currency", value=get_settings().sync.default_currency)
        submitted = st.form_submit_button("Create goal", type="primary")

    if submitted:
        try:
            goal = manager.create_goal(name, target, currency)
        except ValueError as e:
            st.error(f"Please check the details: {e}")
        except StorageError as e:
            st.error(f"Could not save the goal on this device: {e}")
        else:
            st.success(f"Goal '{goal.name}' created.")


def render_goals_page(manager: SavingsManager):
    """Render all goals with their progress and transaction forms."""
    st.title("🎯 Your Goals")

    goals = manager.get_all_goals()
    if not goals:
        st.info("No goals yet. Use 'New Goal' to create your first one.")
        return

    for goal in goals:
        render_goal(manager, goal)
        st.markdown("---")


def render_goal(manager: SavingsManager, goal: Goal):
    """Render one goal card."""
    target = goal.target
    state = goal.state

    st.subheader(goal.name)
    col1, col2, col3 = st.columns(3)
    col1.metric("Saved", f"{state.current_amount} {target.currency}")
    col2.metric("Target", f"{target.amount} {target.currency}")
    col3.metric("Version", state.version)
    st.progress(state.progress_percentage / 100, text=f"{state.progress_percentage:.1f}%")

    pending = goal.pending_transactions
    if pending:
        st.warning(f"⏳ {len(pending)} transaction(s) saved offline, waiting to sync.")

    with st.form(f"tx_{goal.id}"):
        amount = st.number_input("Amount", min_value=0.0, value=50.0, step=10.0, key=f"amt_{goal.id}")
        tx_type = st.radio(
            "Type",
            options=list(TransactionType),
            format_func=lambda t: t.value.title(),
            horizontal=True,
            key=f"type_{goal.id}",
        )
        submitted = st.form_submit_button("Apply")

    if submitted:
        with st.spinner("Syncing..."):
            try:
                result = run_async(manager.add_transaction(goal.id, amount, tx_type))
            except (GoalNotFoundError, InvalidTransactionError) as e:
                st.error(str(e))
                return
            except StorageError as e:
                st.error(f"Could not save on this device: {e}")
                return

        if isinstance(result, SyncConflicted):
            if result.rolled_back:
                st.error(f"↩️ {result.user_message}")
            else:
                st.warning(f"⚠️ {result.user_message}")
            remote_amount = result.remote_state.state.current_amount
            if remote_amount is not None:
                st.caption(f"Server amount: {remote_amount} (version {result.remote_state.state.version})")
        elif isinstance(result, SyncOffline):
            st.warning(f"📴 {result.user_message}")
        else:
            st.success(f"✅ {result.user_message}")

    if isinstance(manager.remote, SimulatedRemoteAuthority):
        if st.button("Simulate a change from another device", key=f"remote_{goal.id}"):
            record = manager.remote.record_remote_change(goal.id)
            st.info(f"Server moved this goal to version {record.state.version}.")

    with st.expander("Ledger"):
        if not goal.ledger:
            st.caption("No transactions yet.")
        for tx in reversed(goal.ledger):
            badge = " ⏳ pending" if tx.pending else ""
            sign = "+" if tx.type == TransactionType.DEPOSIT else "-"
            st.markdown(
                f"`{tx.timestamp:%Y-%m-%d %H:%M}` {sign}{tx.amount} "
                f"({tx.snapshot_before} → {tx.snapshot_after}, v{tx.applied_version}){badge}"
            )


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Local storage", "storage"),
        ("Remote authority", "remote"),
        ("Synchronization", "sync"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name}")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "Configure with `SAVINGS_STORAGE_*`, `SAVINGS_REMOTE_*` and "
        "`SAVINGS_SYNC_*` environment variables or a `.env` file."
    )


if __name__ == "__main__":
    main()
