from datetime import date
from io import BytesIO

import pytest
from PIL import Image
from PyPDF2 import PdfReader

from eventhub.shared.certificates import (
    CERT_HEIGHT,
    CERT_WIDTH,
    CertificateRenderError,
    TemplatePaths,
    load_certificate_template,
    render_certificate,
)
from eventhub.shared.results import TemplateMissing


pytestmark = pytest.mark.smoke


@pytest.fixture
def template(app):
    return load_certificate_template(TemplatePaths.from_config(app.config))


def test_rendering_is_deterministic(template):
    first = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))
    second = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))

    assert first.png == second.png
    assert first.pdf == second.pdf


def test_pdf_has_one_page_matching_image(template):
    rendered = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))

    reader = PdfReader(BytesIO(rendered.pdf))
    assert len(reader.pages) == 1
    box = reader.pages[0].mediabox
    assert (float(box.width), float(box.height)) == (CERT_WIDTH, CERT_HEIGHT)
    with Image.open(BytesIO(rendered.png)) as img:
        assert img.size == (CERT_WIDTH, CERT_HEIGHT)


def test_template_is_not_mutated_between_renders(template):
    before = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))
    render_certificate(template, "Ravi Kumar", "Startup School", date(2026, 3, 5))
    after = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))

    assert before.png == after.png


def test_different_names_give_different_images(template):
    a = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))
    b = render_certificate(template, "Ravi Kumar", "Startup School", date(2026, 3, 5))

    assert a.png != b.png


def test_very_long_name_still_renders(template):
    rendered = render_certificate(template, "Venkata " * 12, "Startup School", None)

    assert rendered.pdf.startswith(b"%PDF")


def test_attachment_filename_uses_event_name(template):
    rendered = render_certificate(template, "Asha Verma", "Startup School", date(2026, 3, 5))

    assert rendered.filename == "Certificate_Startup_School.pdf"


@pytest.mark.parametrize("name", ["", "   ", None, "Asha\x00Verma"])
def test_unrenderable_name_raises(template, name):
    with pytest.raises(CertificateRenderError):
        render_certificate(template, name, "Startup School", date(2026, 3, 5))


def test_missing_background_is_template_missing(app, tmp_path):
    paths = TemplatePaths.from_config(app.config)
    paths = TemplatePaths(str(tmp_path / "absent.png"), paths.font_bold, paths.font_regular)

    with pytest.raises(TemplateMissing) as excinfo:
        load_certificate_template(paths)

    assert excinfo.value.details["asset"] == "background"


def test_non_image_background_is_template_missing(app, tmp_path):
    bogus = tmp_path / "bogus.png"
    bogus.write_bytes(b"not an image")
    paths = TemplatePaths.from_config(app.config)

    with pytest.raises(TemplateMissing):
        load_certificate_template(
            TemplatePaths(str(bogus), paths.font_bold, paths.font_regular)
        )


def test_unusable_font_is_template_missing(app, tmp_path):
    garbage = tmp_path / "broken.ttf"
    garbage.write_bytes(b"\x00\x01garbage")
    paths = TemplatePaths.from_config(app.config)

    with pytest.raises(TemplateMissing) as excinfo:
        load_certificate_template(
            TemplatePaths(paths.background, str(garbage), paths.font_regular)
        )

    assert excinfo.value.details["asset"] == "font_bold"
