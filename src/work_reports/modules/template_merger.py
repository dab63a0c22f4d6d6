"""
Zusammenführen einer Dokumentvorlage mit einem ReportModel.

Zwei Arten von Platzhaltern:
- Text-Platzhalter ({{companyName}} usw.) werden innerhalb von Texten ersetzt.
- Der Block-Platzhalter {{activitiesTable}} ersetzt als Listenelement den
  ganzen Knoten durch die Tätigkeitstabelle.
"""
import re
from typing import Dict, List, Union

from pydantic_models.data.report_model import ReportModel
from pydantic_models.data.template_node import (
    ListNode,
    MapNode,
    Scalar,
    StructuralPlaceholder,
    parse_template,
)
from shared_modules.errors import TemplateMalformed
from shared_modules.formatting import ValueFormatter
from shared_modules.utils import safe_str

Node = Union[Scalar, ListNode, MapNode, StructuralPlaceholder]

PLACEHOLDER_RE = re.compile(r"\{\{([A-Za-z_][A-Za-z0-9_]*)\}\}")

TABLE_WIDTHS = ["auto", "*", "auto", "auto", "auto"]
TABLE_LAYOUT = "lightHorizontalLines"


def build_placeholder_values(model: ReportModel, formatter: ValueFormatter) -> Dict[str, str]:
    """
    Feste Zuordnung Platzhaltername -> Text, gebildet aus dem ReportModel.
    """
    return {
        "reportDate": formatter.date(model.report_date),
        "location": safe_str(model.config.location),
        "companyName": model.company.name,
        "taxNumber": safe_str(model.company.tax_id),
        "city": safe_str(model.company.city),
        "workerName": model.actor.display_name,
        "introText": safe_str(model.config.intro_text),
        "outroText": safe_str(model.config.outro_text),
        "totalAmount": formatter.currency(model.total_amount),
    }


def substitute_text(text: str, values: Dict[str, str]) -> str:
    """
    Ersetzt alle bekannten Platzhalter in einem Durchlauf. Eingesetzte Werte
    werden nicht erneut durchsucht; unbekannte Platzhalter bleiben stehen.
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        return values[name] if name in values else match.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


def build_activities_table(model: ReportModel, formatter: ValueFormatter) -> MapNode:
    """
    Tätigkeitstabelle: Kopfzeile, eine Zeile je Position, Summenzeile.
    """
    currency = formatter.currency_code
    body: List[list] = [["#", "Activity", f"Rate/Hour ({currency})", "Hours", f"Total ({currency})"]]
    for item in sorted(model.line_items, key=lambda i: i.sequence):
        body.append(
            [
                str(item.sequence),
                item.name,
                formatter.currency(item.rate),
                formatter.hours(item.hours),
                formatter.currency(item.line_total),
            ]
        )
    body.append(
        [
            {"text": "TOTAL", "colSpan": 4, "alignment": "right", "bold": True},
            {},
            {},
            {},
            {"text": formatter.currency(model.total_amount), "bold": True},
        ]
    )
    return parse_template(
        {
            "table": {"headerRows": 1, "widths": list(TABLE_WIDTHS), "body": body},
            "layout": TABLE_LAYOUT,
        }
    )


def merge_template(template: Node, model: ReportModel, formatter: ValueFormatter) -> Node:
    """
    Liefert eine vollständig aufgelöste Kopie der Vorlage. Die Eingabe wird
    nicht verändert; alle Knoten des Ergebnisses werden neu erzeugt.

    Raises:
        TemplateMalformed: Wenn die Wurzel kein gültiger Vorlagenknoten ist.
    """
    if not isinstance(template, (Scalar, ListNode, MapNode, StructuralPlaceholder)):
        raise TemplateMalformed(f"Ungültige Vorlagenwurzel vom Typ {type(template).__name__}.")
    values = build_placeholder_values(model, formatter)
    table = build_activities_table(model, formatter)
    return _merge(template, values, table)


def _merge(node: Node, values: Dict[str, str], table: MapNode) -> Node:
    if isinstance(node, Scalar):
        if isinstance(node.value, str):
            return Scalar(value=substitute_text(node.value, values))
        return Scalar(value=node.value)
    if isinstance(node, ListNode):
        items = []
        for item in node.items:
            if isinstance(item, StructuralPlaceholder):
                # ein Element rein, ein Tabellenknoten raus
                items.append(table.model_copy(deep=True))
            else:
                items.append(_merge(item, values, table))
        return ListNode(items=items)
    if isinstance(node, MapNode):
        return MapNode(entries={key: _merge(value, values, table) for key, value in node.entries.items()})
    if isinstance(node, StructuralPlaceholder):
        # außerhalb einer Liste ist der Block-Platzhalter gewöhnlicher Text
        return Scalar(value=node.token)
    raise TemplateMalformed(f"Unbekannter Knotentyp: {type(node).__name__}")
