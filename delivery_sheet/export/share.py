"""
Share links for the delivery sheet.

Builds a WhatsApp link and a mailto: link pre-filled with a short summary
(row count, grand total and the first five deliveries).
"""

from typing import Sequence
from urllib.parse import quote

from delivery_sheet.formatting import format_currency
from delivery_sheet.models.records import DeliveryRecord
from delivery_sheet.summary import total_amount

WHATSAPP_URL = "https://api.whatsapp.com/send?text="
PREVIEW_ROWS = 5

# Same unescaped set as JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "!*'()"


def encode_uri_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE)


def whatsapp_summary(records: Sequence[DeliveryRecord], title: str) -> str:
    total = format_currency(total_amount(records))
    summary = f"📋 *Resumo da Planilha: {title}*\n\n"
    summary += f"Total de Entregas: *{len(records)}*\n"
    summary += f"Valor Total: *{total}*\n"

    preview = records[:PREVIEW_ROWS]
    if preview:
        summary += "\n*Prévia das Entregas:*\n"
        for record in preview:
            summary += f"- *Destino:* {record.destination}, *Total:* {format_currency(record.total)}\n"
    return summary


def email_subject(title: str) -> str:
    return f"Resumo da Planilha: {title}"


def email_body(records: Sequence[DeliveryRecord], title: str) -> str:
    total = format_currency(total_amount(records))
    body = "Olá,\n\n"
    body += f'Segue o resumo da planilha "{title}":\n\n'
    body += f"Total de Entregas: {len(records)}\n"
    body += f"Valor Total: {total}\n\n"

    preview = records[:PREVIEW_ROWS]
    if preview:
        body += f"Prévia das primeiras {PREVIEW_ROWS} entregas:\n\n"
        for record in preview:
            body += f"Data: {record.date}\n"
            body += f"Destino: {record.destination}\n"
            body += f"Total: {format_currency(record.total)}\n"
            body += "-----------------\n"

    body += (
        "\nPara a planilha completa, você pode exportar os arquivos "
        "(CSV, PDF, Excel) diretamente do aplicativo.\n\n"
    )
    body += "Atenciosamente."
    return body


def whatsapp_share_url(records: Sequence[DeliveryRecord], title: str) -> str:
    """Link opening WhatsApp with the sheet summary as the message."""
    return WHATSAPP_URL + encode_uri_component(whatsapp_summary(records, title))


def email_share_url(records: Sequence[DeliveryRecord], title: str) -> str:
    """mailto: link with the sheet summary as subject and body."""
    subject = encode_uri_component(email_subject(title))
    body = encode_uri_component(email_body(records, title))
    return f"mailto:?subject={subject}&body={body}"
