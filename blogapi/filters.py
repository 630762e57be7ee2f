"""
Typed article filter predicates.

List queries are described as a small tree of predicate values which
``to_clause`` translates into a SQLAlchemy ``WHERE`` expression.
"""
from dataclasses import dataclass
from typing import Union

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from blogapi.models import Article, ArticleStatus, Tag


@dataclass(frozen=True)
class StatusIs:
    status: ArticleStatus


@dataclass(frozen=True)
class AuthoredBy:
    user_id: int


@dataclass(frozen=True)
class InCategory:
    category_id: int


@dataclass(frozen=True)
class HasTag:
    tag_id: int


@dataclass(frozen=True)
class TextSearch:
    """Case-insensitive substring match on title, excerpt or content."""

    term: str


@dataclass(frozen=True)
class AllOf:
    predicates: tuple["Predicate", ...]


@dataclass(frozen=True)
class AnyOf:
    predicates: tuple["Predicate", ...]


Predicate = Union[StatusIs, AuthoredBy, InCategory, HasTag, TextSearch, AllOf, AnyOf]

# Matches every row; used when no restriction applies.
MATCH_ALL = AllOf(())


def all_of(*predicates: Predicate) -> Predicate:
    flat = tuple(p for p in predicates if p != MATCH_ALL)
    if len(flat) == 1:
        return flat[0]
    return AllOf(flat)


def any_of(*predicates: Predicate) -> Predicate:
    if len(predicates) == 1:
        return predicates[0]
    return AnyOf(tuple(predicates))


def to_clause(predicate: Predicate) -> ColumnElement[bool]:
    """Translate *predicate* into a SQLAlchemy boolean expression."""
    if isinstance(predicate, StatusIs):
        return Article.status == predicate.status
    if isinstance(predicate, AuthoredBy):
        return Article.author_id == predicate.user_id
    if isinstance(predicate, InCategory):
        return Article.category_id == predicate.category_id
    if isinstance(predicate, HasTag):
        return Article.tags.any(Tag.id == predicate.tag_id)
    if isinstance(predicate, TextSearch):
        return or_(
            Article.title.icontains(predicate.term, autoescape=True),
            Article.excerpt.icontains(predicate.term, autoescape=True),
            Article.content.icontains(predicate.term, autoescape=True),
        )
    if isinstance(predicate, AllOf):
        if not predicate.predicates:
            return true()
        return and_(*(to_clause(p) for p in predicate.predicates))
    if isinstance(predicate, AnyOf):
        if not predicate.predicates:
            return false()
        return or_(*(to_clause(p) for p in predicate.predicates))
    raise TypeError(f"Unsupported predicate: {predicate!r}")
