"""
Name and path derivation for registered entities.

    SubscriptionPlan -> subscription-plans -> /api/v1/subscription-plans
    /api/v1/courses/{id} -> Course

Plural and singular forms come from ``inflect``; case conversion from
pydantic's alias generators.
"""

import inflect
from pydantic.alias_generators import to_camel, to_pascal, to_snake

from entity_shared.config.settings import settings


_inflect = inflect.engine()


def pluralize(word: str) -> str:
    """English plural of a lower-case word."""
    if not word:
        return word
    return _inflect.plural_noun(word)


def singularize(word: str) -> str:
    """English singular of a lower-case word; singular words come back unchanged."""
    if not word:
        return word
    return _inflect.singular_noun(word) or word


def camel_to_snake(name: str) -> str:
    """``SubscriptionPlan`` / ``pageSize`` -> ``subscription_plan`` / ``page_size``."""
    return to_snake(name)


def snake_to_camel(name: str) -> str:
    """``owner_ids`` -> ``ownerIds``."""
    return to_camel(name)


def pascal_to_kebab(name: str) -> str:
    """``SubscriptionPlan`` -> ``subscription-plan``."""
    return to_snake(name).replace("_", "-")


def kebab_to_pascal(name: str) -> str:
    """``subscription-plan`` -> ``SubscriptionPlan``."""
    return to_pascal(name.replace("-", "_"))


def resource_segment(entity_name: str) -> str:
    """Kebab-case plural URL segment: ``SubscriptionPlan`` -> ``subscription-plans``."""
    kebab = pascal_to_kebab(entity_name)
    head, _, last = kebab.rpartition("-")
    plural = pluralize(last)
    return f"{head}-{plural}" if head else plural


def collection_path(entity_name: str, prefix: str | None = None) -> str:
    """``Course`` -> ``/api/v1/courses``."""
    prefix = settings.api_prefix if prefix is None else prefix
    return f"{prefix.rstrip('/')}/{resource_segment(entity_name)}"


def resource_path(entity_name: str, entity_id, prefix: str | None = None) -> str:
    """``Course``, id -> ``/api/v1/courses/<id>``."""
    return f"{collection_path(entity_name, prefix)}/{entity_id}"


def entity_name_from_path(path: str, prefix: str | None = None) -> str:
    """
    Derive the entity name from a request path.

    Takes the segment after the API prefix, singularises its last word and
    PascalCases it:

        /api/v1/courses/:id        -> Course
        /api/v1/subscription-plans -> SubscriptionPlan

    Returns an empty string when the path is outside the prefix.
    """
    prefix = (settings.api_prefix if prefix is None else prefix).rstrip("/")
    if not path.startswith(prefix + "/"):
        return ""
    remainder = path[len(prefix) + 1:]
    segment = remainder.split("/", 1)[0].split("?", 1)[0]
    if not segment:
        return ""
    head, _, last = segment.rpartition("-")
    singular = singularize(last)
    kebab = f"{head}-{singular}" if head else singular
    return kebab_to_pascal(kebab)
