import re
from datetime import date

import pytest

from app.utils import generate_slug, looks_like_uuid, release_year, strip_year_suffix

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


def test_generate_slug_basic():
    assert generate_slug("Late Night Thrills!") == "late-night-thrills"


def test_generate_slug_strips_diacritics():
    assert generate_slug("Ópera Nocturna") == "opera-nocturna"
    assert generate_slug("El Niño y la Cigüeña") == "el-nino-y-la-ciguena"


def test_generate_slug_appends_year():
    assert generate_slug("Matrix Reloaded", "2003") == "matrix-reloaded-2003"
    assert generate_slug("Dune", 2021) == "dune-2021"


def test_generate_slug_collapses_separators():
    assert (
        generate_slug("  Spider-Man:  Across   the Spider-Verse ")
        == "spider-man-across-the-spider-verse"
    )
    assert generate_slug("Amélie -- (2001)") == "amelie-2001"
    assert generate_slug("--Hola--Mundo--") == "hola-mundo"


def test_generate_slug_empty_title_yields_empty_string():
    assert generate_slug("") == ""
    assert generate_slug(None) == ""
    assert generate_slug("¿¡!?") == ""
    assert generate_slug("", "2021") == ""


@pytest.mark.parametrize(
    ("title", "year"),
    [
        ("Ópera Nocturna", None),
        ("La Casa de Papel", "2017"),
        ("Mission: Impossible – Dead Reckoning", "2023"),
        ("日本語 Title", None),
        ("  __weird__ ~~ spacing  ", "1999"),
    ],
)
def test_generate_slug_is_deterministic_and_url_safe(title, year):
    first = generate_slug(title, year)
    assert first == generate_slug(title, year)
    assert SLUG_PATTERN.match(first)


def test_strip_year_suffix():
    assert strip_year_suffix("dune-2021") == "dune"
    assert strip_year_suffix("blade-runner-2049-2017") == "blade-runner-2049"
    assert strip_year_suffix("dune") == "dune"


def test_release_year_accepts_dates_and_strings():
    assert release_year(date(2003, 5, 15)) == "2003"
    assert release_year("2021-10-22") == "2021"
    assert release_year("") is None
    assert release_year(None) is None


def test_looks_like_uuid():
    assert looks_like_uuid("3f2b8c1e-9a4d-4c7e-8b1a-2d3e4f5a6b7c")
    assert looks_like_uuid("3F2B8C1E-9A4D-4C7E-8B1A-2D3E4F5A6B7C")
    assert not looks_like_uuid("matrix-reloaded-2003")
    assert not looks_like_uuid("")
