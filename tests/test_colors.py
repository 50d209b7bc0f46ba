import pytest

from colors import PALETTE, color_value, find_color_in_text, normalize, title_case


@pytest.mark.parametrize("name", list(PALETTE))
def test_normalize_is_idempotent_on_palette(name):
    assert normalize(name) == name
    assert normalize(normalize(name)) == normalize(name)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("light blue", "Light Blue"),
        ("rojo", "Red"),
        ("  RED  ", "Red"),
        ("Azul marino", "Navy Blue"),
        ("azul claro", "Light Blue"),
        ("bleu foncé", "Dark Blue"),
        ("Rosa palo", "Light Pink"),
        ("Marrón", "Brown"),
        ("navy", "Navy Blue"),
        ("grey", "Gray"),
        ("LEOPARDO print", "Leopard Print"),
        ("Floral", "Floral Print"),
        ("Vestido rojo", "Red"),
        ("Dark blue denim", "Dark Blue"),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize("raw", ["unrecognizable_xyz", "", "   ", None])
def test_normalize_unknown_is_none(raw):
    assert normalize(raw) is None


def test_find_color_in_text_whole_words_only():
    assert find_color_in_text("Tailored blazer") is None
    assert find_color_in_text("Vestido Negro Largo") == "Black"
    assert find_color_in_text("Light blue shirt") == "Light Blue"


def test_find_color_in_url_slug():
    assert find_color_in_text("https://shop.example.com/es/vestido-rojo-123") == "Red"
    assert find_color_in_text(None) is None


def test_color_value_and_title_case():
    assert color_value("Red") == "#FF0000"
    assert color_value("Leopard Print") == "pattern-leopard"
    assert color_value("Chartreuse") is None
    assert color_value(None) is None
    assert title_case("LIGHT blue") == "Light Blue"


@pytest.mark.parametrize("raw", ["DARK red", "rojo oscuro", "Rouge foncé"])
def test_modifier_compounds_are_title_cased(raw):
    assert normalize(raw) == "Dark Red"
