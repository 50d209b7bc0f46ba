"""Garment type detection from free text.

Maps a product name (English, Spanish, French, Italian, some German) to a
ProductType by walking an ordered list of keyword groups. The first group with
a keyword that occurs in the lowercased text wins:

  1. dresses   2. shoes   3. bags   4. tops   5. bottoms   6. outerwear
  7. generic table (swimwear, lingerie, suits, other accessories, jewelry)

Specific, high-conflict groups come before broad ones so that e.g.
"leather jacket boots" lands on shoes, not outerwear. There is no scoring.
Supporting a new locale means appending keywords to the relevant group.
"""

from dataclasses import dataclass

from models import ProductType

# =====================================================================
# Keyword groups
# =====================================================================


@dataclass(frozen=True)
class KeywordGroup:
    category: str
    subcategory: str
    name: str
    keywords: tuple[str, ...]


# Priority groups, checked in this order.
PRIORITY_GROUPS: tuple[KeywordGroup, ...] = (
    KeywordGroup(
        "clothes",
        "dresses",
        "Dresses",
        (
            "dress", "gown", "frock", "sundress", "jumpsuit", "romper",
            # es
            "vestido", "mono largo",
            # fr
            "robe", "combinaison",
            # it
            "vestito", "abito", "tuta",
            # de
            "kleid",
        ),
    ),
    KeywordGroup(
        "accessories",
        "shoes",
        "Shoes",
        (
            "shoe", "boot", "sandal", "sneaker", "heel", "loafer", "flats",
            "oxfords", "pumps", "mules", "espadrille", "slipper", "stiletto",
            "wedges", "footwear", "trainers",
            # es
            "zapato", "zapatilla", "bota", "sandalia", "tacón", "tacones",
            "bailarina", "alpargata", "mocasín", "mocasin", "salones",
            # fr
            "chaussure", "escarpin", "bottine", "botte", "ballerine", "mocassin",
            # it
            "scarpa", "scarpe", "stivale", "stivaletto", "sandalo", "décolleté",
            # de
            "schuh", "stiefel", "sandalen",
        ),
    ),
    KeywordGroup(
        "accessories",
        "bags",
        "Bags",
        (
            "bag", "handbag", "purse", "backpack", "clutch", "tote", "crossbody",
            "satchel", "wallet", "shopper", "messenger",
            # es
            "bolso", "bolsa", "cartera", "mochila", "bandolera", "riñonera",
            # fr
            "sac à main", "sac ", "pochette", "besace", "cabas",
            # it
            "borsa", "borsetta", "zaino", "tracolla",
            # de
            "tasche", "rucksack",
        ),
    ),
    KeywordGroup(
        "clothes",
        "tops",
        "Tops",
        (
            "t-shirt", "shirt", "blouse", "sweater", "hoodie", "sweatshirt",
            "tank", "polo", "jersey", "cardigan", "pullover", "turtleneck",
            "jumper", "bodysuit", "camisole", "top", "tee",
            # es
            "camiseta", "camisa", "blusa", "sudadera", "chaleco de punto",
            # fr
            "chemise", "chemisier", "débardeur", "tricot",
            # it
            "maglia", "maglione", "camicia", "felpa", "canotta",
            # de
            "bluse", "hemd",
        ),
    ),
    KeywordGroup(
        "clothes",
        "bottoms",
        "Bottoms",
        (
            "pants", "trousers", "jeans", "shorts", "skirt", "leggings",
            "joggers", "sweatpants", "slacks", "culottes", "palazzo", "bermuda",
            # es
            "pantalón", "pantalon", "vaqueros", "falda",
            # fr
            "jupe",
            # it
            "pantaloni", "gonna",
            # de
            "hose",
        ),
    ),
    KeywordGroup(
        "clothes",
        "outerwear",
        "Outerwear",
        (
            "jacket", "coat", "blazer", "windbreaker", "parka", "raincoat",
            "bomber", "trench", "vest", "poncho",
            # es
            "chaqueta", "abrigo", "cazadora", "gabardina", "americana",
            "chaleco", "plumífero", "plumifero",
            # fr
            "manteau", "veste", "blouson", "doudoune",
            # it
            "giacca", "cappotto", "giubbotto", "piumino",
            # de
            "jacke", "mantel",
        ),
    ),
)

# Catch-all table, scanned after the priority groups.
GENERIC_GROUPS: tuple[KeywordGroup, ...] = (
    KeywordGroup(
        "clothes",
        "swimwear",
        "Swimwear",
        ("swimsuit", "bikini", "swimwear", "bañador", "maillot", "costume da bagno", "badeanzug"),
    ),
    KeywordGroup(
        "clothes",
        "lingerie",
        "Lingerie",
        (
            "lingerie", "bralette", "sports bra", "panties", "knickers",
            "ropa interior", "sujetador", "soutien-gorge", "reggiseno",
        ),
    ),
    KeywordGroup(
        "clothes",
        "suits",
        "Suits",
        ("suit", "tuxedo", "traje", "esmoquin", "costume", "smoking", "anzug"),
    ),
    KeywordGroup(
        "accessories",
        "other",
        "Other Accessories",
        (
            "scarf", "belt", "gloves", "sunglasses", "beanie", "beret", "fedora",
            "watch", "hair accessories", "headband",
            "bufanda", "pañuelo", "cinturón", "cinturon", "guantes", "gafas", "sombrero",
            "gorra", "boina", "tocado", "diadema",
            "écharpe", "foulard", "ceinture", "gants", "lunettes", "chapeau",
            "sciarpa", "cintura", "guanti", "occhiali", "cappello",
            "hat",
        ),
    ),
    KeywordGroup(
        "accessories",
        "jewelry",
        "Jewelry",
        (
            "necklace", "bracelet", "earring", "pendant", "brooch", "anklet",
            "jewelry", "jewellery",
            "collar", "pulsera", "pendientes", "anillo", "broche", "joyas",
            "collier", "boucles", "bague", "bijoux",
            "collana", "bracciale", "orecchini", "anello", "gioielli",
            "ring",
        ),
    ),
)

DEFAULT_TYPE = ProductType(category="clothes", subcategory="other", name="Other")

_CATEGORY_NAMES = {"clothes": "Clothes", "accessories": "Accessories"}


# =====================================================================
# Detector
# =====================================================================


class TypeDetector:
    """First-match-wins keyword classifier over ordered groups."""

    def __init__(self, groups: tuple[KeywordGroup, ...]):
        self.groups = groups
        # Built once; every detect() call hands out the same frozen instances.
        self._types = {
            (g.category, g.subcategory): ProductType(
                category=g.category, subcategory=g.subcategory, name=g.name
            )
            for g in groups
        }

    def detect(self, text: str | None) -> ProductType:
        if not text:
            return DEFAULT_TYPE

        normalized = text.lower()
        for group in self.groups:
            for keyword in group.keywords:
                if keyword in normalized:
                    return self._types[(group.category, group.subcategory)]
        return DEFAULT_TYPE

    def categories(self) -> list[dict]:
        """Category tree as plain dicts, in declaration order."""
        tree: dict[str, dict] = {}
        for group in self.groups:
            entry = tree.setdefault(
                group.category,
                {
                    "id": group.category,
                    "name": category_name(group.category),
                    "subcategories": [],
                },
            )
            entry["subcategories"].append(
                {"id": group.subcategory, "name": group.name, "keywords": list(group.keywords)}
            )
        return list(tree.values())


# =====================================================================
# Module-level singleton
# =====================================================================

detector = TypeDetector(PRIORITY_GROUPS + GENERIC_GROUPS)


def detect(text: str | None) -> ProductType:
    """Classify free text into a ProductType (never fails)."""
    return detector.detect(text)


def all_categories() -> list[dict]:
    return detector.categories()


def subcategories(category_id: str) -> list[dict]:
    for category in detector.categories():
        if category["id"] == category_id:
            return category["subcategories"]
    return []


def category_name(category_id: str) -> str:
    return _CATEGORY_NAMES.get(category_id, "Other")
