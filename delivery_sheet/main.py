"""
Delivery Sheet - Main Streamlit UI

Tracks deliveries and costs, with AI-assisted extraction of deliveries
from photographed receipts.

Features:
- Manual entry of deliveries and costs
- Receipt photo extraction (Gemini or LM Studio)
- In-place editing, deletion and clearing of rows
- Financial summary with per-destination and per-category breakdowns
- CSV / PDF / Excel export and WhatsApp / e-mail sharing
"""

import logging
from typing import Callable, Sequence

import pandas as pd
import streamlit as st

from delivery_sheet.config import ExtractionProvider, get_config, validate_system_requirements
from delivery_sheet.export.csv_export import render_csv
from delivery_sheet.export.excel import ExcelExporter
from delivery_sheet.export.pdf import PdfExporter
from delivery_sheet.export.share import email_share_url, whatsapp_share_url
from delivery_sheet.extraction import BatchExtractor, process_images
from delivery_sheet.formatting import format_currency, is_valid_date_string, slugify_title
from delivery_sheet.llm.client import create_client
from delivery_sheet.llm.errors import ExtractionError
from delivery_sheet.models.records import ImagePayload
from delivery_sheet.storage import LocalStorage, load_state, save_state
from delivery_sheet.store import RecordStore
from delivery_sheet.summary import BreakdownItem, FinancialSummary, total_amount

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_config().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DELIVERY_LABELS = {
    "date": "Data",
    "collection": "Coleta",
    "destination": "Destino",
    "total": "Total",
    "observation": "Observação",
}
COST_LABELS = {
    "date": "Data",
    "description": "Descrição",
    "total": "Total",
    "observation": "Observação",
}
IMAGE_TYPES = ["png", "jpg", "jpeg", "webp", "heic"]


def init_session_state():
    """Initialize Streamlit session state."""
    if "config" not in st.session_state:
        st.session_state.config = get_config()

    if "storage" not in st.session_state:
        st.session_state.storage = LocalStorage(st.session_state.config.storage.path)

    if "store" not in st.session_state:
        store = load_state(
            st.session_state.storage,
            default_title=st.session_state.config.default_title,
        )
        st.session_state.store = store
        st.session_state.saved_revision = store.revision

    if "error" not in st.session_state:
        st.session_state.error = None

    if "extraction_warnings" not in st.session_state:
        st.session_state.extraction_warnings = []

    if "validation_results" not in st.session_state:
        st.session_state.validation_results = validate_system_requirements(st.session_state.config)


def get_store() -> RecordStore:
    return st.session_state.store


def commit():
    """Save the sheet after a mutation."""
    store = get_store()
    if store.revision == st.session_state.saved_revision:
        return
    try:
        save_state(st.session_state.storage, store)
    except OSError as e:
        logger.error(f"Error saving sheet: {e}")
        st.session_state.error = f"Não foi possível salvar os dados: {e}"
        return
    st.session_state.saved_revision = store.revision
    st.toast("✅ Alterações salvas")


def get_extractor() -> BatchExtractor:
    """Batch extractor for the provider selected in the sidebar."""
    config = st.session_state.config
    key = (config.extraction_provider, config.gemini.api_key, config.gemini.model,
           config.lm_studio.base_url, config.lm_studio.model)
    if st.session_state.get("extractor_key") != key:
        st.session_state.extractor = BatchExtractor(create_client(config))
        st.session_state.extractor_key = key
    return st.session_state.extractor


def render_sidebar():
    """Render the settings sidebar."""
    config = st.session_state.config
    results = st.session_state.validation_results or {}

    with st.sidebar:
        st.header("⚙️ Configurações")

        provider_names = {
            ExtractionProvider.GEMINI: "Google Gemini (Nuvem)",
            ExtractionProvider.LM_STUDIO: "LM Studio (Local)",
        }
        providers = list(ExtractionProvider)
        config.extraction_provider = st.selectbox(
            "Provedor de IA",
            options=providers,
            index=providers.index(config.extraction_provider),
            format_func=lambda x: provider_names.get(x, x.value),
        )

        st.divider()

        if config.extraction_provider == ExtractionProvider.GEMINI:
            st.subheader("Gemini")
            config.gemini.api_key = st.text_input(
                "API Key",
                value=config.gemini.api_key or "",
                type="password",
                help="Também pode ser definida via GEMINI_API_KEY no .env",
            )
            config.gemini.model = st.text_input("Modelo", value=config.gemini.model)
            if config.gemini.api_key:
                st.success("✅ Chave da API configurada")
            else:
                st.warning("⚠️ Chave da API não configurada")

        elif config.extraction_provider == ExtractionProvider.LM_STUDIO:
            st.subheader("LM Studio")
            config.lm_studio.base_url = st.text_input("URL", value=config.lm_studio.base_url)
            config.lm_studio.model = st.text_input("Modelo", value=config.lm_studio.model)
            if st.button("🔄 Verificar conexão"):
                st.session_state.validation_results = validate_system_requirements(config)
                results = st.session_state.validation_results
            lm_studio = results.get("lm_studio", {})
            if lm_studio.get("available"):
                st.success("✅ LM Studio em execução")
            else:
                st.warning(f"⚠️ {lm_studio.get('message', 'LM Studio não verificado')}")

        st.divider()
        st.caption(f"Dados salvos em `{config.storage.path}`")


def render_error_banner():
    """Single dismissible error banner."""
    if st.session_state.error:
        col1, col2 = st.columns([12, 1])
        with col1:
            st.error(f"**Erro:** {st.session_state.error}")
        with col2:
            if st.button("✖", key="dismiss_error", help="Fechar"):
                st.session_state.error = None
                st.rerun()

    for warning in st.session_state.extraction_warnings:
        st.warning(warning)


def render_delivery_form():
    """Manual delivery entry form."""
    st.subheader("✍️ Adicionar entrega")
    with st.form("delivery_form", clear_on_submit=True):
        date_value = st.date_input("Data", format="DD/MM/YYYY")
        collection = st.text_input("Coleta")
        destination = st.text_input("Destino")
        total = st.text_input("Total (R$)", placeholder="0,00")
        observation = st.text_input("Observação")

        if st.form_submit_button("➕ Adicionar", type="primary", use_container_width=True):
            date_text = date_value.isoformat() if date_value else ""
            if not is_valid_date_string(date_text):
                st.session_state.error = "Informe uma data válida."
                st.rerun()
            get_store().add_delivery(date_text, collection, destination, total, observation)
            commit()


def render_image_uploader():
    """Receipt photo upload and extraction."""
    st.subheader("📷 Extrair de fotos")
    uploaded_files = st.file_uploader(
        "Fotos de comprovantes ou etiquetas",
        type=IMAGE_TYPES,
        accept_multiple_files=True,
    )

    extractor = get_extractor()
    if st.button(
        "🤖 Processar imagens",
        type="primary",
        use_container_width=True,
        disabled=not uploaded_files or extractor.is_busy,
    ):
        images = [
            ImagePayload(data=f.getvalue(), mime_type=f.type or "image/jpeg", name=f.name)
            for f in uploaded_files
        ]
        st.session_state.error = None
        st.session_state.extraction_warnings = []
        with st.spinner("Processando imagens com a IA..."):
            try:
                result = process_images(get_store(), extractor, images)
            except ExtractionError as e:
                st.session_state.error = str(e)
                st.rerun()
        commit()
        st.session_state.extraction_warnings = [
            f"{failure.name}: {failure.message}" for failure in result.failures
        ]
        st.toast(f"{len(result.records)} entrega(s) adicionada(s).")
        st.rerun()


def render_record_table(
    records: Sequence,
    labels: dict,
    prefix: str,
    on_update: Callable,
    on_delete: Callable[[int], bool],
    on_clear: Callable[[], None],
):
    """Table view plus edit / delete / clear controls for one collection."""
    if not records:
        st.info("Nenhum registro ainda.")
        return

    rows = []
    for record in records:
        row = {label: getattr(record, field) for field, label in labels.items()}
        row["Total"] = format_currency(record.total)
        rows.append(row)
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    by_id = {record.id: record for record in records}
    selected_id = st.selectbox(
        "Editar registro",
        options=list(by_id),
        format_func=lambda rid: " | ".join(
            str(getattr(by_id[rid], field)) for field in list(labels)[:3]
        ),
        key=f"{prefix}_selected",
    )
    selected = by_id[selected_id]

    with st.form(f"{prefix}_edit_form"):
        edited = {
            field: st.text_input(label, value=getattr(selected, field), key=f"{prefix}_{field}_{selected_id}")
            for field, label in labels.items()
        }
        col1, col2 = st.columns(2)
        with col1:
            save = st.form_submit_button("💾 Salvar", type="primary", use_container_width=True)
        with col2:
            delete = st.form_submit_button("🗑️ Excluir", use_container_width=True)

    if save:
        on_update(selected_id, **edited)
        commit()
        st.rerun()
    if delete:
        on_delete(selected_id)
        commit()
        st.rerun()

    with st.expander("Limpar tudo"):
        confirm = st.checkbox(
            "Tenho certeza de que quero apagar todos os registros",
            key=f"{prefix}_confirm_clear",
        )
        if st.button("Apagar todos", disabled=not confirm, key=f"{prefix}_clear"):
            on_clear()
            commit()
            st.rerun()


def render_export_section():
    """Export downloads and share links for the delivery sheet."""
    store = get_store()
    records = store.deliveries
    slug = slugify_title(store.title)
    empty = not records

    st.subheader("📤 Exportar e compartilhar")
    col1, col2, col3 = st.columns(3)
    with col1:
        st.download_button(
            "⬇️ CSV",
            data=render_csv(records).encode("utf-8") if records else b"",
            file_name=f"{slug}.csv",
            mime="text/csv",
            disabled=empty,
            use_container_width=True,
        )
    with col2:
        st.download_button(
            "⬇️ PDF",
            data=PdfExporter().render(records, store.title) if records else b"",
            file_name=f"{slug}.pdf",
            mime="application/pdf",
            disabled=empty,
            use_container_width=True,
        )
    with col3:
        st.download_button(
            "⬇️ Excel",
            data=ExcelExporter().to_bytes(records) if records else b"",
            file_name=f"{slug}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            disabled=empty,
            use_container_width=True,
        )

    col1, col2 = st.columns(2)
    with col1:
        st.link_button("💬 WhatsApp", whatsapp_share_url(records, store.title),
                       disabled=empty, use_container_width=True)
    with col2:
        st.link_button("✉️ E-mail", email_share_url(records, store.title),
                       disabled=empty, use_container_width=True)


def render_deliveries_view():
    store = get_store()
    col1, col2 = st.columns([1, 2])

    with col1:
        render_delivery_form()
        st.divider()
        render_image_uploader()

    with col2:
        new_title = st.text_input("Título da planilha", value=store.title)
        if new_title != store.title and store.set_title(new_title):
            commit()

        total = total_amount(store.deliveries)
        st.metric("Total", format_currency(total))
        render_record_table(
            store.deliveries,
            DELIVERY_LABELS,
            "delivery",
            store.update_delivery,
            store.delete_delivery,
            store.clear_deliveries,
        )
        st.divider()
        render_export_section()


def render_costs_view():
    store = get_store()
    col1, col2 = st.columns([1, 2])

    with col1:
        st.subheader("✍️ Adicionar custo")
        with st.form("cost_form", clear_on_submit=True):
            date_value = st.date_input("Data", format="DD/MM/YYYY")
            description = st.text_input("Descrição", placeholder="Ex.: Combustível")
            total = st.text_input("Total (R$)", placeholder="0,00")
            observation = st.text_input("Observação")
            if st.form_submit_button("➕ Adicionar", type="primary", use_container_width=True):
                date_text = date_value.isoformat() if date_value else ""
                if not is_valid_date_string(date_text):
                    st.session_state.error = "Informe uma data válida."
                    st.rerun()
                else:
                    store.add_cost(date_text, description, total, observation)
                    commit()

    with col2:
        render_record_table(
            store.costs,
            COST_LABELS,
            "cost",
            store.update_cost,
            store.delete_cost,
            store.clear_costs,
        )


def render_breakdown(title: str, items: list[BreakdownItem]):
    st.subheader(title)
    if not items:
        st.caption("Nenhum dado.")
        return
    for item in items:
        col1, col2 = st.columns([3, 1])
        col1.write(item.label)
        col2.write(format_currency(item.total))


def render_summary_view():
    store = get_store()
    summary = FinancialSummary.from_records(store.deliveries, store.costs)

    st.header("📊 Resumo Financeiro")
    if store.is_empty:
        st.info("Adicione entregas ou custos para ver o resumo.")
    col1, col2, col3 = st.columns(3)
    col1.metric("Faturamento Total (Entregas)", format_currency(summary.deliveries_total))
    col2.metric("Custos Totais", format_currency(summary.costs_total))
    col3.metric(
        f"Valor Total Final ({'Lucro' if summary.is_profit else 'Prejuízo'})",
        format_currency(summary.final_result),
    )

    col1, col2 = st.columns(2)
    with col1:
        render_breakdown("Faturamento por Destino", summary.by_destination)
    with col2:
        render_breakdown("Custos por Categoria", summary.by_category)


def main():
    """Main application entry point."""
    st.set_page_config(
        page_title="Planilha de Entregas",
        page_icon="🚚",
        layout="wide",
        initial_sidebar_state="collapsed",
    )

    init_session_state()

    st.title("🚚 Planilha de Entregas")
    render_sidebar()
    render_error_banner()

    deliveries_tab, costs_tab, summary_tab = st.tabs(["Entregas", "Custos", "Resumo"])
    with deliveries_tab:
        render_deliveries_view()
    with costs_tab:
        render_costs_view()
    with summary_tab:
        render_summary_view()


if __name__ == "__main__":
    main()
