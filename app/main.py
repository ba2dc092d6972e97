"""
Streamlit Frontend for Household Bills

The calendar page a household uses to keep track of what is due.

DESIGN PRINCIPLES:
1. The UI owns no state except the month being viewed, the search
   query and the form being edited
2. Every change goes through the store, which saves it immediately
3. Destructive actions (delete) ask for confirmation first
4. Clear error messages in simple language

Run with:
    streamlit run app/main.py
"""

import streamlit as st

from billbook.calendar import WEEKDAY_LABELS, format_currency, format_short
from billbook.config import get_settings, validate_all_settings
from billbook.orchestrator import CalendarFlow, create_app_components
from billbook.services.storage import ImportDocumentError
from billbook.store import HouseholdStore, MemberInUseError
from billbook.validation import InputValidationError


st.set_page_config(
    page_title="Bills",
    page_icon="📅",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .day-outside { opacity: 0.5; }
    .day-today { border: 2px solid #2563eb; border-radius: 8px; padding: 2px 6px; }
    .bill-paid { background-color: #ecfdf5; border-radius: 6px; padding: 2px 6px; }
    .bill-unpaid { background-color: #fffbeb; border-radius: 6px; padding: 2px 6px; }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_components():
    """Get or create application components (cached per server process)."""
    try:
        return create_app_components()
    except Exception as e:
        st.error(f"Failed to open local storage, running in memory only: {e}")
        return create_app_components(memory_only=True)


def main():
    """Main application entry point."""
    store, calendar_flow, audit_logger = get_components()
    symbol = get_settings().app.currency_symbol

    st.sidebar.title("📅 Bills")
    page = st.sidebar.radio(
        "Navigate to:",
        ["📅 Calendar", "⚙️ Settings", "🕑 Activity"],
        index=0,
    )
    st.sidebar.markdown("---")
    render_import_export(store)

    if page == "📅 Calendar":
        render_calendar_page(store, calendar_flow, symbol)
    elif page == "⚙️ Settings":
        render_settings_page(store)
    elif page == "🕑 Activity":
        st.title("🕑 Recent Activity")
        for event in audit_logger.recent_events(limit=50):
            st.markdown(
                f"`{event.timestamp:%Y-%m-%d %H:%M}` {event.description}"
            )


def render_import_export(store: HouseholdStore):
    """Sidebar import/export of the whole household as JSON."""
    filename, content = store.export_payload()
    st.sidebar.download_button(
        "⬇️ Export",
        data=content,
        file_name=filename,
        mime="application/json",
        on_click=store.record_export,
        args=(filename,),
    )

    uploaded = st.sidebar.file_uploader("⬆️ Import", type=["json"])
    if uploaded is not None and st.sidebar.button("Apply import"):
        try:
            store.import_document(uploaded.getvalue())
            st.sidebar.success("Data imported successfully!")
        except ImportDocumentError as e:
            st.sidebar.error(f"Invalid file. {e}")


def render_calendar_page(store: HouseholdStore, flow: CalendarFlow, symbol: str):
    """Month grid with the upcoming / report side panel."""
    col_prev, col_title, col_next, col_search, col_add = st.columns([1, 4, 1, 4, 2])
    with col_prev:
        if st.button("◀", key="prev_month"):
            flow.go_to_previous_month()
            st.rerun()
    with col_next:
        if st.button("▶", key="next_month"):
            flow.go_to_next_month()
            st.rerun()
    with col_search:
        flow.set_query(st.text_input(
            "Search", value=flow.query, placeholder="Search bills…",
            label_visibility="collapsed",
        ))
    with col_add:
        if st.button("➕ Add Bill", type="primary"):
            st.session_state.editing = store.new_draft()

    view = flow.dashboard()
    with col_title:
        st.subheader(view.month_label)

    grid_col, side_col = st.columns([3, 1])

    with grid_col:
        header = st.columns(7)
        for col, label in zip(header, WEEKDAY_LABELS):
            col.markdown(f"**{label}**")

        for week in range(6):
            cols = st.columns(7)
            for col, cell in zip(cols, view.cells[week * 7:(week + 1) * 7]):
                with col:
                    render_day_cell(store, cell, symbol)

    with side_col:
        st.markdown("#### 🔔 Upcoming")
        if not view.upcoming:
            st.caption("Nothing soon")
        for bill in view.upcoming:
            st.markdown(
                f"{bill.title} · {format_short(bill.due_iso)} – "
                f"{format_currency(bill.amount, symbol)}"
            )

        st.markdown("#### 📊 Monthly Report")
        st.markdown(f"Total: {format_currency(view.totals.total, symbol)}")
        st.markdown(f"Paid: {format_currency(view.totals.paid, symbol)}")
        st.markdown(f"Unpaid: {format_currency(view.totals.unpaid, symbol)}")

        if view.overdue_count:
            st.warning(f"Heads up: {view.overdue_count} overdue bill(s)")

    if st.session_state.get("editing") is not None:
        render_bill_form(store, st.session_state.editing)


def render_day_cell(store: HouseholdStore, cell, symbol: str):
    classes = []
    if not cell.in_current_month:
        classes.append("day-outside")
    if cell.is_today:
        classes.append("day-today")
    st.markdown(
        f"<span class='{' '.join(classes)}'>{cell.date.day}</span>",
        unsafe_allow_html=True,
    )
    if not cell.bills:
        st.caption("·")
    for bill in cell.bills:
        css = "bill-paid" if bill.paid else "bill-unpaid"
        amount = "" if bill.paid else f" {format_currency(bill.amount, symbol)}"
        st.markdown(
            f"<div class='{css}'>{bill.title}{amount}</div>",
            unsafe_allow_html=True,
        )
        if st.button("✏️", key=f"edit_{bill.id}", help="Edit"):
            st.session_state.editing = bill.model_dump()
            st.rerun()
        if st.button("✅", key=f"paid_{bill.id}", help="Mark paid"):
            store.toggle_paid(bill.id)
            st.rerun()
    if st.button("+", key=f"add_{cell.date.isoformat()}", help="Add bill"):
        st.session_state.editing = store.new_draft(due=cell.date)
        st.rerun()


def render_bill_form(store: HouseholdStore, draft: dict):
    """New / edit bill form. Nothing is stored until Save."""
    is_existing = bool(draft.get("id")) and draft["id"] in store
    st.markdown("---")
    st.subheader("Edit bill" if is_existing else "New bill")

    members = list(store.members)
    member_names = {m.id: m.name for m in members}
    categories = list(store.categories)
    values = store.form_values(draft)

    with st.form("bill_form"):
        col1, col2 = st.columns(2)
        with col1:
            title = st.text_input("Title", value=values["title"])
            amount = st.number_input(
                "Amount (USD)",
                value=float(values["amount"]),
                min_value=0.0,
                step=1.0,
                format="%.2f",
            )
            due = st.date_input("Due date", value=values["due_iso"])
            category = st.selectbox(
                "Category",
                options=categories,
                index=categories.index(draft["category"]) if draft.get("category") in categories else 0,
            )
        with col2:
            reminder_days = st.number_input(
                "Reminder (days before)",
                min_value=0,
                step=1,
                value=int(values["reminder_days"]),
            )
            recipients = st.multiselect(
                "Recipients",
                options=[m.id for m in members],
                default=[r for r in values["recipients"] if r in member_names],
                format_func=lambda member_id: member_names.get(member_id, member_id),
            )
            paid = st.checkbox("Mark as paid", value=bool(values["paid"]))
        notes = st.text_area("Notes", value=values["notes"])

        save_col, cancel_col, delete_col = st.columns(3)
        saved = save_col.form_submit_button("Save", type="primary")
        cancelled = cancel_col.form_submit_button("Cancel")
        confirm_delete = False
        deleted = False
        if is_existing:
            confirm_delete = delete_col.checkbox("Delete this bill?")
            deleted = delete_col.form_submit_button("Delete")

    if cancelled:
        st.session_state.editing = None
        st.rerun()

    if deleted:
        if confirm_delete:
            store.delete(draft["id"])
            st.session_state.editing = None
            st.rerun()
        else:
            st.error("Tick 'Delete this bill?' to confirm.")

    if saved:
        fields = {
            **draft,
            "title": title,
            "amount": amount,
            "due_iso": due,
            "category": category,
            "reminder_days": int(reminder_days),
            "recipients": recipients,
            "paid": paid,
            "notes": notes,
        }
        try:
            if is_existing:
                store.update(fields)
            else:
                store.create(fields)
        except InputValidationError as e:
            for issue in e.result.issues:
                if issue.severity == "error":
                    st.error(issue.message)
        else:
            st.session_state.editing = None
            st.rerun()


def render_settings_page(store: HouseholdStore):
    """Reminders, categories and household members."""
    st.title("⚙️ Settings")

    st.markdown("### Reminders")
    days = st.number_input(
        "Default days before",
        min_value=0,
        step=1,
        value=store.settings.default_reminder_days,
    )
    member_names = {m.id: m.name for m in store.members}
    recipients = st.multiselect(
        "Default recipients",
        options=list(member_names),
        default=[r for r in store.settings.default_recipients if r in member_names],
        format_func=lambda member_id: member_names.get(member_id, member_id),
    )
    if st.button("Save reminder defaults"):
        try:
            store.set_default_reminder_days(int(days))
            store.set_default_recipients(recipients)
            st.success("Saved.")
        except InputValidationError as e:
            st.error(str(e))
    st.caption(
        "SMS will be sent when we hook up a backend. "
        "In this version data stays only on this machine."
    )

    st.markdown("### Categories")
    st.write(", ".join(store.categories))
    new_category = st.text_input("Add category…")
    if st.button("Add") and new_category.strip():
        store.add_category(new_category)
        st.rerun()

    st.markdown("### Household")
    for member in store.members:
        col_name, col_phone, col_remove = st.columns([3, 3, 1])
        col_name.write(member.name)
        col_phone.write(member.phone or "")
        if col_remove.button("Remove", key=f"remove_{member.id}"):
            try:
                store.remove_member(member.id)
                st.rerun()
            except MemberInUseError as e:
                st.error(str(e))

    with st.form("member_form", clear_on_submit=True):
        name = st.text_input("Display name")
        phone = st.text_input("Phone (E.164)", placeholder="+15551234567")
        if st.form_submit_button("Add member"):
            try:
                store.add_member(name, phone or None)
            except InputValidationError as e:
                st.error(str(e))

    st.markdown("### Status")
    status = validate_all_settings()
    for key in ("storage", "app"):
        if status.get(key, False):
            st.success(f"✅ {key.title()} settings OK")
        else:
            st.error(f"❌ {key.title()} settings: {status.get(f'{key}_error', 'invalid')}")


if __name__ == "__main__":
    main()
