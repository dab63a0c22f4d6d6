"""
PDF-Renderer mit ReportLab.

Interpretiert die aufgelöste Dokumentbeschreibung (pdfmake-artig: content,
styles, defaultStyle, pageSize, pageMargins, pageOrientation) und erzeugt
daraus PDF-Bytes. Unterstützte Inhaltsknoten: Text, {text}, {stack},
{columns}, {ul}, {ol}, {table} und {pageBreak}.
"""
import threading
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from loguru import logger
from reportlab.lib import colors, pagesizes
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT, TA_RIGHT
from reportlab.lib.styles import ParagraphStyle, StyleSheet1, getSampleStyleSheet
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.platypus import (
    Flowable,
    ListFlowable,
    ListItem,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from pydantic_models.config.rendering_config import RenderingConfig
from pydantic_models.data.template_node import NODE_TYPES, to_document
from shared_modules.errors import RenderFailed

ALIGNMENTS = {"left": TA_LEFT, "center": TA_CENTER, "right": TA_RIGHT, "justify": TA_JUSTIFY}

# Schriftschnitte der PDF-Standardschriften: (fett, kursiv) -> Name
FONT_VARIANTS: Dict[str, Dict[Tuple[bool, bool], str]] = {
    "Helvetica": {
        (False, False): "Helvetica",
        (True, False): "Helvetica-Bold",
        (False, True): "Helvetica-Oblique",
        (True, True): "Helvetica-BoldOblique",
    },
    "Times": {
        (False, False): "Times-Roman",
        (True, False): "Times-Bold",
        (False, True): "Times-Italic",
        (True, True): "Times-BoldItalic",
    },
    "Courier": {
        (False, False): "Courier",
        (True, False): "Courier-Bold",
        (False, True): "Courier-Oblique",
        (True, True): "Courier-BoldOblique",
    },
}
FONT_VARIANTS["Times-Roman"] = FONT_VARIANTS["Times"]

# Eigenschaften, die von Containern an ihre Kinder weitergegeben werden
INHERITED_KEYS = ("font", "fontSize", "bold", "italics", "alignment", "color", "lineHeight")
CELL_PADDING = 4


def _margins(value: Any) -> Tuple[float, float, float, float]:
    """pdfmake-Margins (Zahl, [h, v] oder [l, t, r, b]) -> (l, t, r, b)."""
    if value is None:
        return (0, 0, 0, 0)
    if isinstance(value, (int, float)):
        return (value, value, value, value)
    if len(value) == 2:
        return (value[0], value[1], value[0], value[1])
    if len(value) == 4:
        return tuple(value)
    raise ValueError(f"Ungültige Margin-Angabe: {value!r}")


class _RenderRun:
    """Zustand eines einzelnen Render-Aufrufs."""

    def __init__(self, base: ParagraphStyle, styles: Dict[str, Dict[str, Any]], available_width: float):
        self.base = base
        self.styles = styles
        self.available_width = available_width
        self._style_counter = 0

    # -- Stile ---------------------------------------------------------

    def resolve(self, node: Dict[str, Any], inherited: Dict[str, Any]) -> Dict[str, Any]:
        props = {key: inherited[key] for key in INHERITED_KEYS if key in inherited}
        names = node.get("style") or []
        if isinstance(names, str):
            names = [names]
        for name in names:
            named = self.styles.get(name)
            if named is None:
                logger.debug(f"Stil '{name}' ist nicht definiert und wird ignoriert.")
                continue
            props.update(named)
        props.update({key: value for key, value in node.items() if key not in ("text", "style")})
        return props

    def paragraph_style(self, props: Dict[str, Any]) -> ParagraphStyle:
        family = props.get("font") or self.base.fontName
        size = float(props.get("fontSize") or self.base.fontSize)
        variants = FONT_VARIANTS.get(family)
        font_name = variants[(bool(props.get("bold")), bool(props.get("italics")))] if variants else family
        left, top, right, bottom = _margins(props.get("margin"))
        self._style_counter += 1
        return ParagraphStyle(
            name=f"node{self._style_counter}",
            parent=self.base,
            fontName=font_name,
            fontSize=size,
            leading=size * 1.2 * float(props.get("lineHeight") or 1),
            alignment=ALIGNMENTS.get(props.get("alignment") or "left", TA_LEFT),
            textColor=colors.toColor(props["color"]) if props.get("color") else colors.black,
            leftIndent=left,
            rightIndent=right,
            spaceBefore=top,
            spaceAfter=bottom,
        )

    # -- Inhalte -------------------------------------------------------

    def flowables(self, node: Any, inherited: Dict[str, Any]) -> List[Flowable]:
        if node is None:
            return []
        if isinstance(node, (str, int, float, bool)):
            inherited_only = {key: inherited[key] for key in INHERITED_KEYS if key in inherited}
            return [Paragraph(self.markup(node), self.paragraph_style(inherited_only))]
        if isinstance(node, list):
            result: List[Flowable] = []
            for child in node:
                result.extend(self.flowables(child, inherited))
            return result
        if not isinstance(node, dict):
            raise ValueError(f"Nicht darstellbarer Inhalt vom Typ {type(node).__name__}")
        if not node:
            return []

        page_break = node.get("pageBreak")
        body = {key: value for key, value in node.items() if key != "pageBreak"}
        result = self._dict_flowables(body, inherited) if body else []
        if page_break == "before":
            return [PageBreak()] + result
        if page_break == "after":
            return result + [PageBreak()]
        return result

    def _dict_flowables(self, node: Dict[str, Any], inherited: Dict[str, Any]) -> List[Flowable]:
        props = self.resolve(node, inherited)
        if "table" in node:
            return self.table(node, props)
        if "stack" in node:
            return self.flowables(node["stack"], props)
        if "columns" in node:
            return self.columns(node, props)
        if "ul" in node or "ol" in node:
            return self.bullet_list(node, props)
        if "text" in node:
            return [Paragraph(self.markup(node["text"]), self.paragraph_style(props))]
        logger.warning(f"Unbekannter Inhaltsknoten mit Schlüsseln {sorted(node)} wird übersprungen.")
        return []

    def markup(self, text: Any) -> str:
        """Text oder Inline-Fragmente -> ReportLab-Paragraph-Markup."""
        if isinstance(text, list):
            return "".join(self.markup(fragment) for fragment in text)
        if isinstance(text, dict):
            inner = self.markup(text.get("text", ""))
            if text.get("bold"):
                inner = f"<b>{inner}</b>"
            if text.get("italics"):
                inner = f"<i>{inner}</i>"
            return inner
        if text is None:
            return ""
        if isinstance(text, bool):
            text = "true" if text else "false"
        return escape(str(text)).replace("\n", "<br/>")

    def bullet_list(self, node: Dict[str, Any], props: Dict[str, Any]) -> List[Flowable]:
        ordered = "ol" in node
        entries = node["ol"] if ordered else node["ul"]
        items = [ListItem(self.flowables(entry, props) or [Spacer(0, 0)]) for entry in entries]
        return [ListFlowable(items, bulletType="1" if ordered else "bullet", start="1" if ordered else None)]

    def columns(self, node: Dict[str, Any], props: Dict[str, Any]) -> List[Flowable]:
        columns = node["columns"]
        if not columns:
            return []
        widths = [column.get("width", "*") if isinstance(column, dict) else "*" for column in columns]
        cells = [self.flowables(column, props) for column in columns]
        col_widths = self.column_widths(widths, [columns], props)
        table = Table([cells], colWidths=col_widths)
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP"), ("LEFTPADDING", (0, 0), (-1, -1), 0)]))
        return [table]

    def table(self, node: Dict[str, Any], props: Dict[str, Any]) -> List[Flowable]:
        spec = node["table"]
        body = spec.get("body") or []
        if not body:
            return []
        column_count = max(len(row) for row in body)
        commands: List[tuple] = [
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("LEFTPADDING", (0, 0), (-1, -1), CELL_PADDING),
            ("RIGHTPADDING", (0, 0), (-1, -1), CELL_PADDING),
        ]
        data = []
        for r, row in enumerate(body):
            cells = []
            for c in range(column_count):
                cell = row[c] if c < len(row) else None
                if isinstance(cell, dict):
                    col_span = int(cell.get("colSpan", 1) or 1)
                    row_span = int(cell.get("rowSpan", 1) or 1)
                    if col_span > 1 or row_span > 1:
                        commands.append(("SPAN", (c, r), (c + col_span - 1, r + row_span - 1)))
                    cell = {key: value for key, value in cell.items() if key not in ("colSpan", "rowSpan")}
                cells.append(self.flowables(cell, props) if cell not in (None, {}) else "")
            data.append(cells)

        widths = spec.get("widths") or ["*"] * column_count
        header_rows = int(spec.get("headerRows", 0) or 0)
        table = Table(
            data,
            colWidths=self.column_widths(widths, body, props),
            repeatRows=header_rows,
            hAlign="LEFT",
        )
        table.setStyle(TableStyle(commands + self.layout_commands(node.get("layout"), header_rows, len(data))))
        return [table]

    @staticmethod
    def layout_commands(layout: Optional[str], header_rows: int, row_count: int) -> List[tuple]:
        if layout == "noBorders":
            return []
        if layout == "lightHorizontalLines":
            commands = []
            if header_rows:
                commands.append(("LINEBELOW", (0, header_rows - 1), (-1, header_rows - 1), 1, colors.black))
            if row_count - 1 > header_rows:
                commands.append(("LINEBELOW", (0, header_rows), (-1, row_count - 2), 0.5, colors.lightgrey))
            return commands
        if layout == "headerLineOnly":
            return [("LINEBELOW", (0, header_rows - 1), (-1, header_rows - 1), 1, colors.black)] if header_rows else []
        return [("GRID", (0, 0), (-1, -1), 0.5, colors.black)]

    def column_widths(self, widths: List[Any], body: List[list], props: Dict[str, Any]) -> List[float]:
        """
        pdfmake-Breiten -> Punkte: Zahlen direkt, "auto" nach längstem Zelltext,
        "*" teilt sich den Rest der verfügbaren Breite.
        """
        font = props.get("font") or self.base.fontName
        size = float(props.get("fontSize") or self.base.fontSize)
        resolved: List[Optional[float]] = []
        for c, width in enumerate(widths):
            if isinstance(width, (int, float)) and not isinstance(width, bool):
                resolved.append(float(width))
            elif width == "auto":
                longest = 0.0
                for row in body:
                    cell = row[c] if c < len(row) else None
                    if isinstance(cell, dict) and int(cell.get("colSpan", 1) or 1) > 1:
                        continue
                    longest = max(longest, self._text_width(cell, font, size))
                resolved.append(longest + 2 * CELL_PADDING + 2)
            else:
                resolved.append(None)
        stars = resolved.count(None)
        if stars:
            rest = self.available_width - sum(w for w in resolved if w is not None)
            share = max(rest / stars, 30.0)
            resolved = [share if w is None else w for w in resolved]
        return resolved

    def _text_width(self, cell: Any, font: str, size: float) -> float:
        if cell is None:
            return 0.0
        if isinstance(cell, dict):
            variants = FONT_VARIANTS.get(font)
            name = variants[(bool(cell.get("bold")), bool(cell.get("italics")))] if variants else font
            return self._text_width_plain(cell.get("text", ""), name, float(cell.get("fontSize") or size))
        if isinstance(cell, list):
            return max((self._text_width(part, font, size) for part in cell), default=0.0)
        variants = FONT_VARIANTS.get(font)
        return self._text_width_plain(cell, variants[(False, False)] if variants else font, size)

    @staticmethod
    def _text_width_plain(text: Any, font_name: str, size: float) -> float:
        if isinstance(text, list):
            text = "".join(str(part.get("text", "")) if isinstance(part, dict) else str(part) for part in text)
        lines = str(text).split("\n") or [""]
        return max(stringWidth(line, font_name, size) for line in lines)


class PdfRenderer:
    """
    Rendert eine aufgelöste Vorlage in PDF-Bytes.
    Das ReportLab-Stylesheet wird beim ersten Aufruf genau einmal erzeugt
    (geschützt durch einen Lock) und danach nur noch gelesen, daher darf eine
    Instanz von parallelen Berichtsläufen gemeinsam genutzt werden.
    """

    def __init__(self, config: Optional[RenderingConfig] = None):
        self.config: RenderingConfig = config or RenderingConfig()
        self._stylesheet: Optional[StyleSheet1] = None
        self._lock = threading.Lock()

    def _engine(self) -> StyleSheet1:
        if self._stylesheet is None:
            with self._lock:
                if self._stylesheet is None:
                    logger.debug("Initialisiere ReportLab-Stylesheet.")
                    self._stylesheet = getSampleStyleSheet()
        return self._stylesheet

    def render(self, document: Any, styles: Optional[Dict[str, Any]] = None) -> bytes:
        """
        Rendert die Dokumentbeschreibung. styles überschreibt gleichnamige
        Stile der Vorlage.

        Raises:
            RenderFailed: Bei jedem Fehler im Renderer. Es gibt keinen Retry.
        """
        try:
            definition = to_document(document) if isinstance(document, NODE_TYPES) else document
            return self._render(definition, styles)
        except RenderFailed:
            raise
        except Exception as e:
            logger.error(f"PDF-Erzeugung fehlgeschlagen: {e}")
            raise RenderFailed(f"PDF-Erzeugung fehlgeschlagen: {e}") from e

    def _render(self, definition: Any, styles: Optional[Dict[str, Any]]) -> bytes:
        if isinstance(definition, dict) and "content" in definition:
            doc_def = dict(definition)
        else:
            doc_def = {"content": definition}
        merged_styles = {**(doc_def.get("styles") or {}), **(styles or {})}
        default_style = doc_def.get("defaultStyle") or {}

        page_size = self._page_size(doc_def.get("pageSize"), doc_def.get("pageOrientation"))
        left, top, right, bottom = _margins(
            doc_def["pageMargins"] if "pageMargins" in doc_def else self.config.page_margins
        )
        base = ParagraphStyle(
            name="ReportBase",
            parent=self._engine()["Normal"],
            fontName=FONT_VARIANTS.get(self.config.font_name, {}).get((False, False), self.config.font_name),
            fontSize=self.config.font_size,
            leading=self.config.font_size * 1.2,
        )
        run = _RenderRun(base, merged_styles, page_size[0] - left - right)
        story = run.flowables(doc_def.get("content"), run.resolve(default_style, {}))
        if not story:
            story = [Spacer(0, 0)]

        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=page_size,
            leftMargin=left,
            rightMargin=right,
            topMargin=top,
            bottomMargin=bottom,
            title=(doc_def.get("info") or {}).get("title") or self.config.title or "",
        )
        doc.build(story)
        pdf = buffer.getvalue()
        logger.debug(f"PDF mit {len(pdf)} Bytes erzeugt.")
        return pdf

    def _page_size(self, value: Any, orientation: Optional[str]) -> Tuple[float, float]:
        value = value or self.config.page_size
        if isinstance(value, str):
            size = getattr(pagesizes, value.upper(), None)
            if size is None:
                raise ValueError(f"Unbekanntes Seitenformat: {value}")
        elif isinstance(value, dict):
            size = (float(value["width"]), float(value["height"]))
        else:
            size = (float(value[0]), float(value[1]))
        if orientation == "landscape":
            return pagesizes.landscape(size)
        return pagesizes.portrait(size)
