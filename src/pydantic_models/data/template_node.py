"""
Knotentypen einer Dokumentvorlage.

Eine Vorlage ist ein generischer Baum (pdfmake-artige Dokumentbeschreibung), der
als getaggte Union modelliert wird:

    Scalar                 Text, Zahl, Bool oder None
    ListNode               geordnete Liste von Knoten
    MapNode                geordnete Zuordnung Schlüssel -> Knoten
    StructuralPlaceholder  reservierter Block-Platzhalter, nur als Listenelement

parse_template() wandelt rohe JSON-Daten in Knoten um, to_document() wieder zurück.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from shared_modules.errors import TemplateMalformed

# Block-Platzhalter für die Tätigkeitstabelle
ACTIVITIES_TABLE_TOKEN = "{{activitiesTable}}"


class Scalar(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["scalar"] = "scalar"
    value: Union[bool, int, float, str, None] = None


class ListNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["list"] = "list"
    items: List["TemplateNode"] = Field(default_factory=list)


class MapNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["map"] = "map"
    entries: Dict[str, "TemplateNode"] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.entries.get(key, default)


class StructuralPlaceholder(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["placeholder"] = "placeholder"
    token: str = ACTIVITIES_TABLE_TOKEN


TemplateNode = Annotated[
    Union[Scalar, ListNode, MapNode, StructuralPlaceholder],
    Field(discriminator="kind"),
]

NODE_TYPES = (Scalar, ListNode, MapNode, StructuralPlaceholder)

ListNode.model_rebuild()
MapNode.model_rebuild()


def parse_template(raw: Any) -> Union[Scalar, ListNode, MapNode, StructuralPlaceholder]:
    """
    Wandelt eine rohe, JSON-artige Dokumentbeschreibung in Vorlagenknoten um.
    Der Block-Platzhalter wird nur als Listenelement erkannt; an jeder anderen
    Stelle bleibt er ein gewöhnlicher Text.

    Raises:
        TemplateMalformed: Bei Werten außerhalb der Knotentypen.
    """
    return _parse(raw, in_list=False, path="$")


def _parse(raw: Any, in_list: bool, path: str):
    if isinstance(raw, NODE_TYPES):
        return raw
    if isinstance(raw, (bool, int, float, str)) or raw is None:
        if in_list and raw == ACTIVITIES_TABLE_TOKEN:
            return StructuralPlaceholder(token=raw)
        return Scalar(value=raw)
    if isinstance(raw, (list, tuple)):
        return ListNode(
            items=[_parse(item, in_list=True, path=f"{path}[{i}]") for i, item in enumerate(raw)]
        )
    if isinstance(raw, dict):
        entries = {}
        for key, value in raw.items():
            if not isinstance(key, str):
                raise TemplateMalformed(f"Schlüssel {key!r} bei {path} ist kein Text.")
            entries[key] = _parse(value, in_list=False, path=f"{path}.{key}")
        return MapNode(entries=entries)
    raise TemplateMalformed(
        f"Nicht unterstützter Wert vom Typ {type(raw).__name__} bei {path}."
    )


def to_document(node) -> Any:
    """
    Wandelt Vorlagenknoten zurück in einfache Python-Daten (dict/list/Skalar).
    Ein nicht aufgelöster Block-Platzhalter wird wieder zu seinem Text.
    """
    if isinstance(node, Scalar):
        return node.value
    if isinstance(node, ListNode):
        return [to_document(item) for item in node.items]
    if isinstance(node, MapNode):
        return {key: to_document(value) for key, value in node.entries.items()}
    if isinstance(node, StructuralPlaceholder):
        return node.token
    raise TemplateMalformed(f"Unbekannter Knotentyp: {type(node).__name__}")
