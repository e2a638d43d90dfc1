"""
Knowledge search extension.

A small built-in encyclopedia the model can query without network access,
plus unit conversion. Entries are grouped by category; lookups are
case-insensitive substring matches over titles, summaries and title words.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Iterable

from parley.conversation.extensions.base import BaseFunctionExtension

logger = logging.getLogger(__name__)

CATEGORIES = ["science", "history", "geography", "technology", "general"]


@dataclass(frozen=True)
class KnowledgeEntry:
    key: str
    category: str
    title: str
    summary: str
    details: str
    tags: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        if not self.tags:
            object.__setattr__(self, "tags", tuple(self.title.lower().split()))

    def matches(self, query: str) -> bool:
        return (
            query in self.title.lower()
            or query in self.summary.lower()
            or any(query in tag for tag in self.tags)
        )


DEFAULT_ENTRIES: tuple[KnowledgeEntry, ...] = (
    KnowledgeEntry(
        "photosynthesis",
        "Science",
        "Photosynthesis",
        "The process by which plants use sunlight, water and carbon dioxide to "
        "produce oxygen and energy in the form of sugar.",
        "Photosynthesis takes place in the chloroplasts of plant cells in two "
        "stages: the light-dependent reactions and the Calvin cycle. It supplies "
        "most of the oxygen in the atmosphere and forms the base of most food chains.",
    ),
    KnowledgeEntry(
        "gravity",
        "Science",
        "Gravity",
        "A fundamental force that attracts objects with mass toward each other.",
        "Gravity is one of the four fundamental forces. General relativity "
        "describes it as the curvature of spacetime caused by mass and energy. "
        "Near the Earth's surface it accelerates objects at about 9.8 m/s^2.",
    ),
    KnowledgeEntry(
        "dna",
        "Science",
        "DNA (Deoxyribonucleic Acid)",
        "The hereditary material that carries the genetic instructions of almost "
        "all living organisms.",
        "DNA is a double helix of nucleotides built from four bases: adenine, "
        "thymine, guanine and cytosine. Their sequence encodes genetic information "
        "used for heredity and protein synthesis.",
    ),
    KnowledgeEntry(
        "ancient rome",
        "History",
        "Ancient Rome",
        "A civilization that grew from a city-state in Italy into one of the "
        "largest empires in history.",
        "Rome is traditionally dated from 753 BC; the Western Empire fell in 476 AD "
        "and the Eastern (Byzantine) Empire in 1453. Its roads, aqueducts and legal "
        "system still shape the modern world.",
    ),
    KnowledgeEntry(
        "industrial revolution",
        "History",
        "Industrial Revolution",
        "The move to machine manufacturing in Europe and the United States from "
        "about 1760 to 1840.",
        "Beginning in Britain, it replaced hand production with machines, new "
        "chemical processes and steam power, and reshaped economic and social "
        "structures worldwide.",
    ),
    KnowledgeEntry(
        "mount everest",
        "Geography",
        "Mount Everest",
        "The Earth's highest mountain above sea level, in the Himalayas on the "
        "border between Nepal and Tibet.",
        "Everest rises 8,848.86 m (29,031.7 ft). It is called Sagarmatha in Nepali "
        "and Chomolungma in Tibetan, and was first climbed by Edmund Hillary and "
        "Tenzing Norgay in 1953.",
    ),
    KnowledgeEntry(
        "amazon rainforest",
        "Geography",
        "Amazon Rainforest",
        "The world's largest tropical rainforest, covering much of the Amazon "
        "Basin in South America.",
        "The rainforest covers about 5.5 million km^2 across nine countries, about "
        "60% of it in Brazil, and plays a major role in absorbing carbon dioxide.",
    ),
    KnowledgeEntry(
        "artificial intelligence",
        "Technology",
        "Artificial Intelligence (AI)",
        "The simulation of human intelligence in machines that are programmed to "
        "think and learn.",
        "AI spans machine learning, deep learning, natural language processing and "
        "computer vision, aiming at tasks such as perception, speech recognition "
        "and decision-making.",
    ),
    KnowledgeEntry(
        "quantum computing",
        "Technology",
        "Quantum Computing",
        "Computation that harnesses quantum mechanical phenomena to process "
        "information.",
        "Quantum computers use qubits, which can hold superpositions of states, "
        "letting them solve some problems in cryptography and optimization far "
        "faster than classical machines.",
    ),
)

# Linear units: factor to the base unit of each dimension
# (metre, gram, litre, square metre).
_LINEAR_UNITS: dict[str, dict[str, float]] = {
    "length": {
        "mm": 0.001, "millimeter": 0.001, "millimeters": 0.001,
        "cm": 0.01, "centimeter": 0.01, "centimeters": 0.01,
        "m": 1.0, "meter": 1.0, "meters": 1.0,
        "km": 1000.0, "kilometer": 1000.0, "kilometers": 1000.0,
        "in": 0.0254, "inch": 0.0254, "inches": 0.0254,
        "ft": 0.3048, "foot": 0.3048, "feet": 0.3048,
        "yd": 0.9144, "yard": 0.9144, "yards": 0.9144,
        "mi": 1609.344, "mile": 1609.344, "miles": 1609.344,
    },
    "weight": {
        "mg": 0.001, "milligram": 0.001, "milligrams": 0.001,
        "g": 1.0, "gram": 1.0, "grams": 1.0,
        "kg": 1000.0, "kilogram": 1000.0, "kilograms": 1000.0,
        "oz": 28.3495, "ounce": 28.3495, "ounces": 28.3495,
        "lb": 453.592, "pound": 453.592, "pounds": 453.592,
    },
    "volume": {
        "ml": 0.001, "milliliter": 0.001, "milliliters": 0.001,
        "l": 1.0, "liter": 1.0, "liters": 1.0,
        "cup": 0.236588, "cups": 0.236588,
        "pt": 0.473176, "pint": 0.473176, "pints": 0.473176,
        "qt": 0.946353, "quart": 0.946353, "quarts": 0.946353,
        "gal": 3.785411784, "gallon": 3.785411784, "gallons": 3.785411784,
    },
    "area": {
        "m2": 1.0, "sq m": 1.0, "square meter": 1.0, "square meters": 1.0,
        "km2": 1_000_000.0, "square kilometer": 1_000_000.0, "square kilometers": 1_000_000.0,
        "ft2": 0.09290304, "sq ft": 0.09290304, "square foot": 0.09290304, "square feet": 0.09290304,
        "acre": 4046.8564224, "acres": 4046.8564224,
        "ha": 10_000.0, "hectare": 10_000.0, "hectares": 10_000.0,
    },
}

_TEMPERATURE_ALIASES = {
    "c": "celsius", "celsius": "celsius",
    "f": "fahrenheit", "fahrenheit": "fahrenheit",
    "k": "kelvin", "kelvin": "kelvin",
}


def convert_temperature(value: float, from_unit: str, to_unit: str) -> float:
    """Convert *value* between Celsius, Fahrenheit and Kelvin (names or symbols)."""
    source = _TEMPERATURE_ALIASES.get(from_unit.lower())
    target = _TEMPERATURE_ALIASES.get(to_unit.lower())
    if source is None:
        raise ValueError(f"Unknown temperature unit: {from_unit}")
    if target is None:
        raise ValueError(f"Unknown temperature unit: {to_unit}")

    if source == "fahrenheit":
        celsius = (value - 32) * 5 / 9
    elif source == "kelvin":
        celsius = value - 273.15
    else:
        celsius = value

    if target == "fahrenheit":
        return celsius * 9 / 5 + 32
    if target == "kelvin":
        return celsius + 273.15
    return celsius


def convert_units(value: float, from_unit: str, to_unit: str, unit_type: str = "length") -> float:
    """Convert *value* between two units of the same *unit_type*.

    Raises:
        ValueError: For an unknown unit type or unit name.
    """
    unit_type = unit_type.lower()
    if unit_type == "temperature":
        return convert_temperature(value, from_unit, to_unit)

    table = _LINEAR_UNITS.get(unit_type)
    if table is None:
        raise ValueError(f"Unit type {unit_type!r} is not supported")
    for unit in (from_unit, to_unit):
        if unit.lower() not in table:
            raise ValueError(f"Unknown {unit_type} unit: {unit}")
    return value * table[from_unit.lower()] / table[to_unit.lower()]


class KnowledgeSearchExtension(BaseFunctionExtension):
    """Fact lookup, definitions and unit conversion over a local knowledge base.

    Args:
        entries: Knowledge base; defaults to `DEFAULT_ENTRIES`.
        max_search_results: Default cap for ``search_facts``.
        enable_fact_lookup: Register ``search_facts``.
        enable_definitions: Register ``get_definition``.
        enable_conversions: Register ``convert_units``.
        rng: Random source for ``get_random_fact``.
    """

    name = "KnowledgeSearch"
    description = "Provides knowledge search and information lookup functions"

    def __init__(
        self,
        entries: Iterable[KnowledgeEntry] = DEFAULT_ENTRIES,
        max_search_results: int = 5,
        enable_fact_lookup: bool = True,
        enable_definitions: bool = True,
        enable_conversions: bool = True,
        rng: random.Random | None = None,
        enabled: bool = True,
    ) -> None:
        self.entries = list(entries)
        self.max_search_results = max_search_results
        self.enable_fact_lookup = enable_fact_lookup
        self.enable_definitions = enable_definitions
        self.enable_conversions = enable_conversions
        self._rng = rng or random.Random()
        super().__init__(enabled=enabled)
        logger.debug(
            "[%s] %d functions over %d knowledge entries",
            self.name,
            len(self),
            len(self.entries),
        )

    def register_functions(self) -> None:
        if self.enable_fact_lookup:
            self.add_function(
                "search_facts",
                "Search for factual information",
                {
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query for facts"},
                        "category": {
                            "type": "string",
                            "description": "Category to search in; 'general' searches all",
                            "enum": CATEGORIES,
                        },
                        "max_results": {
                            "type": "number",
                            "description": "Maximum number of results",
                        },
                    },
                    "required": ["query"],
                },
                self._search_facts,
                "search_facts('solar system', 'science', 3)",
            )

        if self.enable_definitions:
            self.add_function(
                "get_definition",
                "Get definition of a term",
                {
                    "type": "object",
                    "properties": {
                        "term": {"type": "string", "description": "Term to define"},
                        "detailed": {
                            "type": "boolean",
                            "description": "Return the detailed definition",
                        },
                    },
                    "required": ["term"],
                },
                self._get_definition,
                "get_definition('artificial intelligence', true)",
            )

        self.add_function(
            "browse_category",
            "Browse knowledge by category",
            {
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "description": "Category to browse",
                        "enum": CATEGORIES,
                    },
                    "limit": {"type": "number", "description": "Number of entries to return"},
                },
                "required": ["category"],
            },
            self._browse_category,
            "browse_category('science', 3)",
        )
        self.add_function(
            "get_random_fact",
            "Get a random interesting fact",
            {
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "description": "Category for the fact",
                        "enum": CATEGORIES + ["any"],
                    }
                },
                "required": [],
            },
            self._get_random_fact,
            "get_random_fact('science')",
        )

        if self.enable_conversions:
            self.add_function(
                "convert_units",
                "Convert between different units",
                {
                    "type": "object",
                    "properties": {
                        "value": {"type": "number", "description": "Value to convert"},
                        "from_unit": {"type": "string", "description": "Unit to convert from"},
                        "to_unit": {"type": "string", "description": "Unit to convert to"},
                        "unit_type": {
                            "type": "string",
                            "description": "Kind of quantity",
                            "enum": ["length", "weight", "temperature", "volume", "area"],
                        },
                    },
                    "required": ["value", "from_unit", "to_unit"],
                },
                self._convert_units,
                "convert_units(5, 'feet', 'meters', 'length')",
            )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def search(self, query: str, category: str = "general", limit: int | None = None) -> list[KnowledgeEntry]:
        """Return entries matching *query*, optionally restricted to *category*."""
        query = query.lower()
        category = category.lower()
        found = [
            entry
            for entry in self.entries
            if (category == "general" or entry.category.lower() == category) and entry.matches(query)
        ]
        return found[: self.max_search_results if limit is None else limit]

    def define(self, term: str) -> KnowledgeEntry | None:
        term = term.lower()
        for entry in self.entries:
            if term in entry.title.lower() or term in entry.key:
                return entry
        return None

    def in_category(self, category: str) -> list[KnowledgeEntry]:
        return [e for e in self.entries if e.category.lower() == category.lower()]

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _search_facts(self, args: dict[str, Any]) -> str:
        query = str(args["query"])
        category = str(args.get("category") or "general")
        limit = int(args.get("max_results") or self.max_search_results)
        results = self.search(query, category, limit)
        if not results:
            return f"No facts found for query {query!r} in category {category.lower()!r}."

        lines = [f"Found {len(results)} fact(s) for {query!r}:", ""]
        for index, entry in enumerate(results, start=1):
            lines.append(f"{index}. **{entry.title}** ({entry.category})")
            lines.append(f"   {entry.summary}")
        return "\n".join(lines)

    async def _get_definition(self, args: dict[str, Any]) -> str:
        term = str(args["term"])
        entry = self.define(term)
        if entry is None:
            return (
                f"No definition found for {term!r}. "
                "Try a different term or check the spelling."
            )
        body = entry.details if args.get("detailed") else entry.summary
        return f"**{entry.title}**\n\n{body}"

    async def _browse_category(self, args: dict[str, Any]) -> str:
        category = str(args["category"]).lower()
        limit = int(args.get("limit") or 5)
        entries = self.in_category(category)[:limit]
        if not entries:
            return f"No entries found in category {category!r}."

        lines = [f"Knowledge entries in {category!r} category:", ""]
        for index, entry in enumerate(entries, start=1):
            lines.append(f"{index}. **{entry.title}**")
            lines.append(f"   {entry.summary}")
        return "\n".join(lines)

    async def _get_random_fact(self, args: dict[str, Any]) -> str:
        category = str(args.get("category") or "any").lower()
        pool = self.entries if category == "any" else self.in_category(category)
        if not pool:
            return f"No facts available in category {category!r}."
        entry = self._rng.choice(pool)
        return f"**Random Fact: {entry.title}** ({entry.category})\n\n{entry.details}"

    async def _convert_units(self, args: dict[str, Any]) -> str:
        value = float(args["value"])
        from_unit = str(args["from_unit"])
        to_unit = str(args["to_unit"])
        result = convert_units(value, from_unit, to_unit, str(args.get("unit_type") or "length"))
        return f"{value:g} {from_unit.lower()} = {result:.3f} {to_unit.lower()}"
