"""fake_data.py — Schema-driven fake data for function/tool call arguments.

Given the JSON-schema-like ``parameters`` of a caller's function or tool
definition, builds a structurally valid, pseudo-random instance of it.
String properties whose name matches a known semantic category (``email``,
``phone``, ``uuid``, ...) get a plausible value for that category.

Every value is drawn from the ``Faker`` instance passed in, so the output is
a pure function of the RNG state and the schema. Schemas are never mutated.

Called by: factory.py (function_call / tool_calls arguments)
Depends on: faker
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from faker import Faker

ARRAY_LENGTH = 5
NUMBER_MAX = 100

# Dates are drawn from a fixed window so a seeded run never depends on the
# wall clock.
_DATE_START = datetime(2015, 1, 1, tzinfo=timezone.utc)
_DATE_END = datetime(2025, 1, 1, tzinfo=timezone.utc)


class SchemaError(ValueError):
    """Raised when a parameter schema cannot be instantiated."""


# ─── Semantic String Categories ───────────────────────────────────────────────


def _price(rng: Faker) -> str:
    return f"{rng.pyfloat(min_value=1, max_value=1000, right_digits=2):.2f}"


def _product_name(rng: Faker) -> str:
    adjective = rng.random_element(("Ergonomic", "Handcrafted", "Sleek", "Rustic", "Refined"))
    material = rng.random_element(("Steel", "Wooden", "Cotton", "Granite", "Plastic"))
    noun = rng.random_element(("Chair", "Keyboard", "Lamp", "Table", "Backpack"))
    return f"{adjective} {material} {noun}"


STRING_GENERATORS: dict[str, Callable[[Faker], str]] = {
    "name": lambda rng: rng.name(),
    "email": lambda rng: rng.email(),
    "price": _price,
    "company": lambda rng: rng.company(),
    "phone": lambda rng: rng.phone_number(),
    "address": lambda rng: rng.street_address(),
    "date": lambda rng: rng.date_time_between(
        start_date=_DATE_START, end_date=_DATE_END, tzinfo=timezone.utc
    ).isoformat(),
    "jobTitle": lambda rng: rng.job(),
    "creditCardNumber": lambda rng: rng.credit_card_number(),
    "currencyCode": lambda rng: rng.currency_code(),
    "productName": _product_name,
    "uuid": lambda rng: rng.uuid4(),
}


def generate_fake_string(name: str | None, rng: Faker) -> str:
    """Generate a string value, plausible for ``name`` when it is a known category."""
    generator = STRING_GENERATORS.get(name or "")
    if generator is not None:
        return generator(rng)
    return " ".join(rng.words(5))


# ─── Recursive Synthesis ──────────────────────────────────────────────────────


def generate_fake_data(schema: Mapping[str, Any] | None, name: str | None, rng: Faker) -> Any:
    """Instantiate one schema node.

    Args:
        schema: The node (``type`` plus ``properties`` / ``items`` as needed).
        name: The property name the node is bound to, used for semantic strings.
        rng: The session's Faker instance.

    Returns:
        A JSON-serializable value matching the node's declared type.
    """
    if schema is None:
        schema = {}
    if not isinstance(schema, Mapping):
        raise SchemaError(f"Schema for '{name}' must be an object, got {type(schema).__name__}")

    kind = schema.get("type")
    if kind == "string":
        return generate_fake_string(name, rng)
    if kind in ("number", "integer"):
        return rng.random_int(min=0, max=NUMBER_MAX)
    if kind == "boolean":
        return rng.pybool()
    if kind == "array":
        return generate_fake_array(schema, rng)
    if kind == "object":
        return generate_fake_object(schema, rng)
    return rng.word()


def generate_fake_array(schema: Mapping[str, Any], rng: Faker) -> list[Any]:
    items = schema.get("items") or {}
    return [generate_fake_data(items, "item", rng) for _ in range(ARRAY_LENGTH)]


def generate_fake_object(schema: Mapping[str, Any], rng: Faker) -> dict[str, Any]:
    properties = schema.get("properties")
    if properties is None:
        return {}
    if not isinstance(properties, Mapping):
        raise SchemaError("'properties' must be an object mapping names to schemas")
    return {
        prop_name: generate_fake_data(prop_schema, prop_name, rng)
        for prop_name, prop_schema in properties.items()
    }


def generate_arguments(parameters: Mapping[str, Any] | None, rng: Faker) -> str:
    """Build the ``arguments`` string for a function call.

    The function's ``parameters`` are treated as an object schema; a missing
    schema produces ``{}``. The result is indented JSON, matching what the
    real API returns in ``function.arguments``.

    Raises:
        SchemaError: If the schema is structurally malformed.
    """
    if parameters is None:
        parameters = {}
    if not isinstance(parameters, Mapping):
        raise SchemaError("Function 'parameters' must be an object schema")
    return json.dumps(generate_fake_object(parameters, rng), indent=2)
