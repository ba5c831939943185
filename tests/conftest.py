"""Shared fixtures: small PDFs and images built in memory."""

import cv2
import fitz
import numpy as np
import pytest

PAGE_W, PAGE_H = 612, 792

# Box around the "SECRET" line on every generated page, PDF points, top-left origin
SECRET_BOX = (60, 60, 280, 120)


def make_pdf(pages: int = 1, password: str = None) -> bytes:
    """Letter-size pages with a SECRET line near the top and a PUBLIC line lower down."""
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=PAGE_W, height=PAGE_H)
        page.insert_text((72, 100), f"SECRET {i + 1}", fontsize=24)
        page.insert_text((72, 400), "PUBLIC", fontsize=24)

    kwargs = {}
    if password:
        kwargs = dict(
            encryption=fitz.PDF_ENCRYPT_AES_128,
            user_pw=password,
            owner_pw=password + "-owner",
        )
    data = doc.tobytes(**kwargs)
    doc.close()
    return data


def make_image(ext: str = "png", width: int = 200, height: int = 100) -> bytes:
    """White image with a dark gray square at (20, 20)-(60, 60)."""
    img = np.full((height, width, 3), 255, dtype=np.uint8)
    img[20:60, 20:60] = (90, 90, 90)
    ok, buf = cv2.imencode(f".{ext}", img)
    assert ok
    return buf.tobytes()


def page_text(pdf_bytes: bytes, page_index: int = 0) -> str:
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        return doc[page_index].get_text()


@pytest.fixture
def pdf_bytes():
    return make_pdf(pages=3)


@pytest.fixture
def encrypted_pdf_bytes():
    return make_pdf(pages=3, password="right")


@pytest.fixture
def png_bytes():
    return make_image("png")


@pytest.fixture
def jpg_bytes():
    return make_image("jpg")
