from typing import List, Optional
from pydantic import BaseModel, field_validator

class RenderingConfig(BaseModel):
    """
    Standardwerte für den PDF-Renderer, solange die Vorlage selbst nichts anderes vorgibt.
    """
    page_size: str = "A4"
    page_margins: List[float] = [40, 60, 40, 60]  # links, oben, rechts, unten in pt
    font_name: str = "Helvetica"
    font_size: float = 10
    title: Optional[str] = "Work Report"

    @field_validator("page_margins")
    def margins_need_four_values(cls, v: List[float]) -> List[float]:
        if len(v) != 4:
            raise ValueError("rendering.page_margins erwartet genau vier Werte.")
        return v
