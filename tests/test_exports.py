from urllib.parse import unquote

import fitz
import pytest
from openpyxl import load_workbook

from delivery_sheet.config import get_config
from delivery_sheet.export import (
    ExcelExporter,
    PdfExporter,
    email_share_url,
    export_csv,
    export_pdf,
    export_xlsx,
    render_csv,
    whatsapp_share_url,
)
from delivery_sheet.export.pdf import MARGIN, PAGE_HEIGHT, split_row, wrap_text


@pytest.fixture
def sheet(store):
    store.add_delivery("12/03", "Rua A, 10", 'Loja "Central"', "35,50", "")
    store.add_delivery("13/03", "Rua C", "Rua D", "abc", "portaria")
    return store


def test_csv_text(sheet):
    assert render_csv(sheet.deliveries) == (
        "Data,Coleta,Destino,Total,Observacao\n"
        '"12/03","Rua A, 10","Loja ""Central""","35,50",""\n'
        '"13/03","Rua C","Rua D","abc","portaria"'
    )


def test_csv_file_is_named_after_the_title(sheet, tmp_path):
    path = export_csv(sheet.deliveries, "Entregas de Março", tmp_path / "out")

    assert path.name == "entregas_de_março.csv"
    assert path.read_text(encoding="utf-8") == render_csv(sheet.deliveries)


@pytest.mark.parametrize(
    "export, extension",
    [(export_csv, "csv"), (export_xlsx, "xlsx"), (export_pdf, "pdf")],
)
def test_exports_default_to_the_configured_folder(sheet, tmp_path, monkeypatch, export, extension):
    monkeypatch.setattr(get_config(), "export_dir", tmp_path / "exportacoes")

    path = export(sheet.deliveries, "Março")

    assert path == tmp_path / "exportacoes" / f"março.{extension}"
    assert path.exists()


@pytest.mark.parametrize("export", [export_csv, export_xlsx, export_pdf])
def test_nothing_is_written_for_an_empty_sheet(export, tmp_path):
    assert export([], "Planilha", tmp_path) is None
    assert list(tmp_path.iterdir()) == []


def test_excel_layout(sheet, tmp_path):
    path = export_xlsx(sheet.deliveries, "Planilha de Entregas", tmp_path)

    assert path.name == "planilha_de_entregas.xlsx"
    ws = load_workbook(path)["Entregas"]
    assert [c.value for c in ws[1]] == ["Data", "Coleta", "Destino", "Total", "Observação"]
    assert ws["B2"].value == "Rua A, 10"
    assert ws["D2"].value == pytest.approx(35.5)
    assert ws["D2"].number_format == "R$ #,##0.00"
    assert ws["D3"].value == 0
    assert ws["C4"].value == "Total Geral"
    assert ws["D4"].value == pytest.approx(35.5)
    assert ws["D4"].font.bold


def test_excel_custom_currency_format(sheet):
    wb = ExcelExporter(currency_format="#,##0.00").build_workbook(sheet.deliveries)

    assert wb.active["D2"].number_format == "#,##0.00"


def test_pdf_contains_title_rows_and_total(sheet):
    data = PdfExporter().render(sheet.deliveries, "Planilha de Março")

    with fitz.open(stream=data, filetype="pdf") as doc:
        text = doc[0].get_text()
        assert doc.page_count == 1
        assert doc.metadata["title"] == "Planilha de Março"
    assert "Planilha de Março" in text
    assert "Rua A, 10" in text
    assert "R$ 35,50" in text
    assert "Total Geral:" in text


def test_pdf_breaks_long_sheets_across_pages(store):
    for index in range(120):
        store.add_delivery("12/03", f"Coleta {index}", f"Destino {index}", "10")

    data = PdfExporter().render(store.deliveries, "Planilha")

    with fitz.open(stream=data, filetype="pdf") as doc:
        assert doc.page_count > 1
        assert "Data" in doc[1].get_text()
        assert "R$ 1.200,00" in doc[-1].get_text()


def test_pdf_row_taller_than_a_page_continues_on_the_next(store):
    store.add_delivery("12/03", "Rua A", "Rua B", "10", " ".join(["palavra"] * 2000))
    store.add_delivery("13/03", "Rua C", "Rua D", "5")
    bottom = PAGE_HEIGHT - MARGIN

    data = PdfExporter().render(store.deliveries, "Planilha")

    with fitz.open(stream=data, filetype="pdf") as doc:
        assert doc.page_count > 2
        words = 0
        for page in doc:
            row_words = [w for w in page.get_text("words") if "palavra" in w[4]]
            words += sum(w[4].count("palavra") for w in row_words)
            assert all(w[3] <= bottom + 1 for w in row_words)
            assert all(d["rect"].y1 <= bottom + 1 for d in page.get_drawings())
        assert words == 2000
        assert "Rua D" in doc[-1].get_text()


def test_split_row_keeps_short_cells_on_the_first_piece():
    pieces = split_row([["12/03"], ["a", "b", "c", "d", "e"]], 2)

    assert pieces == [
        [["12/03"], ["a", "b"]],
        [[""], ["c", "d"]],
        [[""], ["e"]],
    ]


def test_wrap_text_keeps_lines_within_width():
    text = "Avenida Brigadeiro Faria Lima, 1234, conjunto 56, Jardim Paulistano"

    lines = wrap_text(text, 100)

    assert len(lines) > 1
    assert " ".join(lines) == text
    assert all(fitz.get_text_length(line, fontname="helv", fontsize=9) <= 100 for line in lines)
    assert wrap_text("", 100) == [""]


def test_whatsapp_link(sheet):
    url = whatsapp_share_url(sheet.deliveries, "Março")

    assert url.startswith("https://api.whatsapp.com/send?text=")
    assert " " not in url
    message = unquote(url.split("text=", 1)[1])
    assert "Resumo da Planilha: Março" in message
    assert "Total de Entregas: *2*" in message
    assert "Valor Total: *R$ 35,50*" in message


def test_share_preview_lists_first_five_rows(store):
    for index in range(7):
        store.add_delivery("12/03", destination=f"Destino {index}", total="1")

    body = unquote(email_share_url(store.deliveries, "Março").split("&body=", 1)[1])

    assert "Destino 4" in body
    assert "Destino 5" not in body
    assert "Total de Entregas: 7" in body


def test_email_link(sheet):
    url = email_share_url(sheet.deliveries, "Março & Abril")

    assert url.startswith("mailto:?subject=")
    subject = url[len("mailto:?subject="):].split("&body=", 1)[0]
    assert unquote(subject) == "Resumo da Planilha: Março & Abril"
    assert "%26" in subject
