from io import BytesIO

import pytest
from PyPDF2 import PdfReader

from conftest import COMPANY, PERIOD, REPORT_DATE
from pydantic_models.config.rendering_config import RenderingConfig
from pydantic_models.data.template_node import parse_template
from shared_modules.errors import ErrorKind, RenderFailed
from work_reports.modules.pdf_renderer import PdfRenderer
from work_reports.modules.report_aggregator import ReportAggregator
from work_reports.modules.template_merger import merge_template


def _text(pdf: bytes) -> str:
    reader = PdfReader(BytesIO(pdf))
    return "\n".join(page.extract_text() for page in reader.pages)


def test_render_merged_report(repository, identity, formatter):
    model = ReportAggregator(repository, identity).build_report_model(COMPANY, PERIOD, REPORT_DATE)
    document = merge_template(parse_template(model.template.template_definition), model, formatter)

    pdf = PdfRenderer().render(document, styles=model.template.styles)

    assert pdf.startswith(b"%PDF")
    text = _text(pdf)
    assert "TOTAL" in text
    assert "ActivityA" in text
    assert "Acme GmbH" in text
    assert "600.00" in text


def test_render_plain_content_and_layouts():
    document = {
        "pageSize": "LETTER",
        "pageOrientation": "landscape",
        "content": [
            {"columns": [{"text": "left"}, {"text": "right", "alignment": "right"}]},
            {"ul": ["one", "two"]},
            {"ol": ["first"]},
            {"stack": ["stacked", {"text": ["a ", {"text": "bold", "bold": True}]}]},
            {"table": {"body": [["x", "y"], ["1", "2"]]}, "layout": "noBorders"},
            {"text": "next page", "pageBreak": "before"},
        ],
    }
    text = _text(PdfRenderer().render(document))
    assert "stacked" in text
    assert "next page" in text


def test_renderer_is_reusable():
    renderer = PdfRenderer(RenderingConfig(font_name="Courier", font_size=12))
    first = renderer.render({"content": ["a"]})
    second = renderer.render(["b"])
    assert first.startswith(b"%PDF") and second.startswith(b"%PDF")


def test_render_failure_is_wrapped():
    with pytest.raises(RenderFailed) as exc:
        PdfRenderer().render({"content": ["x"], "pageSize": "NOT_A_PAGE"})
    assert exc.value.kind == ErrorKind.RENDER_FAILED
