"""Color normalization onto a closed palette.

Raw color text from retailer pages ("Rojo", "light blue", "LEOPARDO print",
"Azul marino") is mapped onto a canonical palette name before it is stored or
compared. normalize() never raises; unknown input yields None.
"""

import logging
import re

logger = logging.getLogger(__name__)

# =====================================================================
# Palette
# =====================================================================

# Canonical name -> display value (hex or pattern tag). Order matters for the
# token-overlap fallback, which returns the first palette entry that matches.
PALETTE: dict[str, str] = {
    "Black": "#000000",
    "White": "#FFFFFF",
    "Red": "#FF0000",
    "Blue": "#0000FF",
    "Green": "#008000",
    "Yellow": "#FFD700",
    "Purple": "#800080",
    "Pink": "#FFC0CB",
    "Orange": "#FFA500",
    "Brown": "#8B4513",
    "Gray": "#808080",
    "Navy Blue": "#000080",
    "Beige": "#F5F5DC",
    "Gold": "#FFD700",
    "Silver": "#C0C0C0",
    "Bronze": "#CD7F32",
    "Burgundy": "#800020",
    "Maroon": "#800000",
    "Teal": "#008080",
    "Olive": "#808000",
    "Khaki": "#F0E68C",
    "Cream": "#FFFDD0",
    "Ivory": "#FFFFF0",
    "Light Blue": "#ADD8E6",
    "Dark Blue": "#00008B",
    "Light Green": "#90EE90",
    "Dark Green": "#006400",
    "Light Pink": "#FFB6C1",
    "Hot Pink": "#FF69B4",
    "Light Gray": "#D3D3D3",
    "Dark Gray": "#A9A9A9",
    "Animal Print": "pattern-animal",
    "Leopard Print": "pattern-leopard",
    "Tiger Print": "pattern-tiger",
    "Snake Print": "pattern-snake",
    "Zebra Print": "pattern-zebra",
    "Floral Print": "pattern-floral",
}

PATTERN_KEYWORDS = ("leopard", "tiger", "snake", "zebra", "animal", "floral")

MODIFIERS = ("light", "dark", "bright", "pale", "deep")

# Foreign (and alternate English) color words -> English palette wording.
# Multi-word entries are matched before single words.
TRANSLATIONS: dict[str, str] = {
    # en variants
    "grey": "Gray",
    "navy": "Navy Blue",
    "wine": "Burgundy",
    "camel": "Beige",
    "nude": "Beige",
    "off white": "Cream",
    "off-white": "Cream",
    # es
    "negro": "Black",
    "blanco": "White",
    "rojo": "Red",
    "azul": "Blue",
    "verde": "Green",
    "amarillo": "Yellow",
    "morado": "Purple",
    "lila": "Purple",
    "rosa": "Pink",
    "naranja": "Orange",
    "marrón": "Brown",
    "marron": "Brown",
    "gris": "Gray",
    "dorado": "Gold",
    "plateado": "Silver",
    "crema": "Cream",
    "marfil": "Ivory",
    "caqui": "Khaki",
    "oliva": "Olive",
    "burdeos": "Burgundy",
    "granate": "Maroon",
    "azul marino": "Navy Blue",
    "marino": "Navy Blue",
    "azul claro": "Light Blue",
    "azul oscuro": "Dark Blue",
    "verde claro": "Light Green",
    "verde oscuro": "Dark Green",
    "gris claro": "Light Gray",
    "gris oscuro": "Dark Gray",
    "rosa claro": "Light Pink",
    "rosa palo": "Light Pink",
    "fucsia": "Hot Pink",
    # fr
    "noir": "Black",
    "blanc": "White",
    "rouge": "Red",
    "bleu": "Blue",
    "vert": "Green",
    "jaune": "Yellow",
    "violet": "Purple",
    "rose": "Pink",
    "marron clair": "Beige",
    "doré": "Gold",
    "argenté": "Silver",
    "bordeaux": "Burgundy",
    "bleu marine": "Navy Blue",
    "bleu clair": "Light Blue",
    # it
    "nero": "Black",
    "bianco": "White",
    "rosso": "Red",
    "blu": "Blue",
    "azzurro": "Light Blue",
    "giallo": "Yellow",
    "viola": "Purple",
    "arancione": "Orange",
    "grigio": "Gray",
    "oro": "Gold",
    "argento": "Silver",
    "panna": "Cream",
    # de
    "schwarz": "Black",
    "weiß": "White",
    "weiss": "White",
    "rot": "Red",
    "blau": "Blue",
    "grün": "Green",
    "gelb": "Yellow",
    "braun": "Brown",
    "grau": "Gray",
    "silber": "Silver",
    "creme": "Cream",
    "oliv": "Olive",
    "dunkelblau": "Navy Blue",
    "hellblau": "Light Blue",
    "dunkelgrau": "Dark Gray",
    "hellgrau": "Light Gray",
    "dunkelgrün": "Dark Green",
    "hellgrün": "Light Green",
}

# Foreign modifier words -> English modifier.
MODIFIER_TRANSLATIONS: dict[str, str] = {
    "claro": "light",
    "oscuro": "dark",
    "clair": "light",
    "foncé": "dark",
    "fonce": "dark",
    "chiaro": "light",
    "scuro": "dark",
    "hell": "light",
    "dunkel": "dark",
}

_PALETTE_BY_LOWER = {name.lower(): name for name in PALETTE}
# Longest names first so "navy blue" wins over "blue" in substring matching.
_PALETTE_LONGEST_FIRST = sorted(_PALETTE_BY_LOWER, key=len, reverse=True)
_TRANSLATIONS_LONGEST_FIRST = sorted(TRANSLATIONS, key=len, reverse=True)
_WORD_RE = re.compile(r"\w+(?:-\w+)*")


def title_case(text: str) -> str:
    """'LIGHT blue' -> 'Light Blue'."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


def color_value(name: str | None) -> str | None:
    """Display value (hex or pattern tag) for a canonical palette name."""
    if not name:
        return None
    return PALETTE.get(name)


# =====================================================================
# Normalization
# =====================================================================


def normalize(raw: str | None) -> str | None:
    """Map raw color text onto a canonical palette name, or None.

    Order, first success wins: pattern keyword, translation table, exact
    palette name, "<modifier> <color>" compound, palette substring, palette
    word overlap.
    """
    if not raw or not isinstance(raw, str):
        return None

    text = " ".join(raw.lower().split())
    if not text:
        return None

    # 1. Patterns
    for pattern in PATTERN_KEYWORDS:
        if pattern in text:
            return f"{pattern.capitalize()} Print"

    # Localized terms, whole input
    if text in TRANSLATIONS:
        return TRANSLATIONS[text]

    # 2. Exact palette match
    if text in _PALETTE_BY_LOWER:
        return _PALETTE_BY_LOWER[text]

    # 3. Compound "<modifier> <palette color>" (also "<color> <modifier>" in es/fr/it)
    compound = _match_compound(text)
    if compound:
        return compound

    # 4. Substring match against palette names, then localized terms by whole word
    for lower in _PALETTE_LONGEST_FIRST:
        if lower in text:
            return _PALETTE_BY_LOWER[lower]
    translated = _find_translated_word(text)
    if translated:
        return translated

    # 5. Any base word of a palette name inside the input
    for name in PALETTE:
        if PALETTE[name].startswith("pattern-"):
            continue
        words = [w for w in name.lower().split() if w not in MODIFIERS and w != "hot"]
        if any(w in text for w in words):
            return name

    logger.debug(f"Unrecognized color text: {raw!r}")
    return None


def _base_color(words: list[str]) -> str | None:
    """Palette name for a color phrase, translating it first if needed."""
    phrase = " ".join(words)
    if phrase in TRANSLATIONS:
        return TRANSLATIONS[phrase]
    return _PALETTE_BY_LOWER.get(phrase)


def _match_compound(text: str) -> str | None:
    words = text.split()
    if len(words) < 2:
        return None

    first = MODIFIER_TRANSLATIONS.get(words[0], words[0])
    if first in MODIFIERS:
        base = _base_color(words[1:])
        if base:
            return title_case(f"{first} {base}")

    last = MODIFIER_TRANSLATIONS.get(words[-1], words[-1])
    if last in MODIFIERS:
        base = _base_color(words[:-1])
        if base:
            combined = title_case(f"{last} {base}")
            return _PALETTE_BY_LOWER.get(combined.lower(), combined)

    return None


def _find_translated_word(text: str) -> str | None:
    """Localized color term appearing as a whole word (or word run) in text."""
    padded = f" {' '.join(_WORD_RE.findall(text))} "
    for term in _TRANSLATIONS_LONGEST_FIRST:
        if f" {term} " in padded:
            return TRANSLATIONS[term]
    return None


def find_color_in_text(text: str | None) -> str | None:
    """Look for a color word in free text such as a product name or URL slug.

    Stricter than normalize(): matches whole words only, so "tailored" does
    not read as red.
    """
    if not text:
        return None

    words = _WORD_RE.findall(text.lower().replace("_", " ").replace("-", " "))
    if not words:
        return None
    joined = f" {' '.join(words)} "

    for pattern in PATTERN_KEYWORDS:
        if f" {pattern} " in joined:
            return f"{pattern.capitalize()} Print"
    for lower in _PALETTE_LONGEST_FIRST:
        if f" {lower} " in joined:
            return _PALETTE_BY_LOWER[lower]
    return _find_translated_word(" ".join(words))
