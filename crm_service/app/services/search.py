"""
Tiered customer search.

The query length picks the strategy:
  short  (1-2 chars)  substring match on name/email, prefix hits ranked first
  medium (3-4 chars)  prefix OR trigram similarity > 0.15 OR containment
  long   (5+ chars)   full-text (natural and strict prefix tsqueries) OR similarity > 0.2 OR containment

Ties break by last name then first name. Every user-supplied value is a bound parameter.
"""
import re
from typing import List, Optional, Tuple

from sqlalchemy import Float, Select, and_, case, func, literal_column, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ErrorDetail, ValidationFailedError
from app.models.customer import Customer
from app.schemas.common import SearchTier

SHORT_MAX_LENGTH = 2
MEDIUM_MAX_LENGTH = 4

MEDIUM_SIMILARITY_THRESHOLD = 0.15
LONG_SIMILARITY_THRESHOLD = 0.2

PREFIX_WEIGHT = 0.5
TEXT_RANK_WEIGHT = 0.5
SIMILARITY_WEIGHT = 0.3
CONTAINMENT_WEIGHT = 0.2

SHORT_PREFIX_RANK = 1.0
SHORT_CONTAINS_RANK = 0.5

LIKE_ESCAPE = "\\"
TS_CONFIG = literal_column("'english'")
TERM_PATTERN = re.compile(r"[a-z0-9]+")

NAME_FIELDS = (Customer.first_name, Customer.last_name, Customer.email)


def normalize_query(query: Optional[str]) -> str:
    normalized = (query or "").strip().lower()
    if not normalized:
        raise ValidationFailedError([ErrorDetail(field="query", message="Search query is required")])
    return normalized


def select_tier(normalized: str) -> SearchTier:
    if len(normalized) <= SHORT_MAX_LENGTH:
        return SearchTier.SHORT
    if len(normalized) <= MEDIUM_MAX_LENGTH:
        return SearchTier.MEDIUM
    return SearchTier.LONG


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def strict_tsquery(normalized: str) -> Optional[str]:
    """'jon do' -> 'jon:* & do:*'. None when the query has no searchable terms."""
    terms = TERM_PATTERN.findall(normalized)
    if not terms:
        return None
    return " & ".join(f"{term}:*" for term in terms)


def _any_field_like(pattern: str):
    return or_(*(field.ilike(pattern, escape=LIKE_ESCAPE) for field in NAME_FIELDS))


def _flag(condition):
    return case((condition, 1.0), else_=0.0)


def _short_tier(normalized: str):
    escaped = escape_like(normalized)
    is_prefix = _any_field_like(f"{escaped}%")
    match = _any_field_like(f"%{escaped}%")
    rank = case((is_prefix, SHORT_PREFIX_RANK), else_=SHORT_CONTAINS_RANK)
    return match, rank


def _medium_tier(normalized: str):
    escaped = escape_like(normalized)
    is_prefix = _any_field_like(f"{escaped}%")
    similarity = func.similarity(Customer.search_text, normalized, type_=Float)
    contains = Customer.search_text.like(f"%{escaped}%", escape=LIKE_ESCAPE)

    match = or_(is_prefix, similarity > MEDIUM_SIMILARITY_THRESHOLD, contains)
    rank = (
        PREFIX_WEIGHT * _flag(is_prefix)
        + SIMILARITY_WEIGHT * similarity
        + CONTAINMENT_WEIGHT * _flag(contains)
    )
    return match, rank


def _long_tier(normalized: str):
    escaped = escape_like(normalized)
    similarity = func.similarity(Customer.search_text, normalized, type_=Float)
    contains = Customer.search_text.like(f"%{escaped}%", escape=LIKE_ESCAPE)

    natural = func.websearch_to_tsquery(TS_CONFIG, normalized)
    text_matches = [Customer.search_vector.op("@@")(natural)]
    text_ranks = [func.ts_rank(Customer.search_vector, natural, type_=Float)]

    strict = strict_tsquery(normalized)
    if strict:
        strict_query = func.to_tsquery(TS_CONFIG, strict)
        text_matches.append(Customer.search_vector.op("@@")(strict_query))
        text_ranks.append(func.ts_rank(Customer.search_vector, strict_query, type_=Float))

    text_rank = func.greatest(*text_ranks, type_=Float) if len(text_ranks) > 1 else text_ranks[0]

    match = or_(*text_matches, similarity > LONG_SIMILARITY_THRESHOLD, contains)
    rank = (
        TEXT_RANK_WEIGHT * text_rank
        + SIMILARITY_WEIGHT * similarity
        + CONTAINMENT_WEIGHT * _flag(contains)
    )
    return match, rank


TIER_BUILDERS = {
    SearchTier.SHORT: _short_tier,
    SearchTier.MEDIUM: _medium_tier,
    SearchTier.LONG: _long_tier,
}


def build_search_statement(subject_id: str, query: str) -> Tuple[SearchTier, Select]:
    normalized = normalize_query(query)
    tier = select_tier(normalized)
    match, rank = TIER_BUILDERS[tier](normalized)

    stmt = (
        select(Customer)
        .where(and_(Customer.user_id == subject_id, match))
        .order_by(rank.desc(), Customer.last_name.asc(), Customer.first_name.asc())
    )
    return tier, stmt


async def search_customers(session: AsyncSession, subject_id: str, query: str) -> List[Customer]:
    _, stmt = build_search_statement(subject_id, query)
    result = await session.execute(stmt)
    return list(result.scalars().all())
