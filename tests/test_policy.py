"""
Visibility policy unit tests — pure functions, no database.
"""
import pytest

from blogapi.filters import MATCH_ALL, AllOf, AnyOf, AuthoredBy, StatusIs
from blogapi.models import Article, ArticleStatus, Comment, Role
from blogapi.policy import (
    can_manage_taxonomy,
    can_mutate_article,
    can_mutate_comment,
    can_view_article,
    can_view_unpublished_by,
    list_visibility,
)
from blogapi.security import Caller

OWNER = Caller(user_id=1, email="o@example.com", username="owner", role=Role.USER)
OTHER = Caller(user_id=2, email="x@example.com", username="other", role=Role.USER)
MODERATOR = Caller(user_id=3, email="m@example.com", username="mod", role=Role.MODERATOR)
ADMIN = Caller(user_id=4, email="a@example.com", username="admin", role=Role.ADMIN)

PUBLISHED = StatusIs(ArticleStatus.PUBLISHED)


def _article(status: ArticleStatus) -> Article:
    return Article(status=status, author_id=OWNER.user_id)


# ---------------------------------------------------------------------------
# Article view / mutate
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("caller", [None, OWNER, OTHER, MODERATOR, ADMIN])
def test_published_article_visible_to_everyone(caller):
    assert can_view_article(_article(ArticleStatus.PUBLISHED), caller)


@pytest.mark.parametrize("status", [ArticleStatus.DRAFT, ArticleStatus.ARCHIVED])
def test_unpublished_article_visible_to_owner_and_admin_only(status):
    article = _article(status)
    assert can_view_article(article, OWNER)
    assert can_view_article(article, ADMIN)
    assert not can_view_article(article, None)
    assert not can_view_article(article, OTHER)
    assert not can_view_article(article, MODERATOR)


def test_mutate_article_requires_owner_or_admin():
    article = _article(ArticleStatus.PUBLISHED)
    assert can_mutate_article(article, OWNER)
    assert can_mutate_article(article, ADMIN)
    assert not can_mutate_article(article, OTHER)
    assert not can_mutate_article(article, MODERATOR)
    assert not can_mutate_article(article, None)


def test_mutate_comment_requires_owner_or_admin():
    comment = Comment(author_id=OWNER.user_id, article_id=10, content="hi")
    assert can_mutate_comment(comment, OWNER)
    assert can_mutate_comment(comment, ADMIN)
    assert not can_mutate_comment(comment, OTHER)
    assert not can_mutate_comment(comment, None)


def test_unpublished_by_author():
    assert can_view_unpublished_by(OWNER.user_id, OWNER)
    assert can_view_unpublished_by(OWNER.user_id, ADMIN)
    assert not can_view_unpublished_by(OWNER.user_id, OTHER)
    assert not can_view_unpublished_by(OWNER.user_id, None)


def test_taxonomy_is_admin_only():
    assert can_manage_taxonomy(ADMIN)
    assert not can_manage_taxonomy(MODERATOR)
    assert not can_manage_taxonomy(OWNER)
    assert not can_manage_taxonomy(None)


# ---------------------------------------------------------------------------
# List visibility
# ---------------------------------------------------------------------------

def test_default_listing_is_published_only():
    assert list_visibility(None, None) == PUBLISHED
    assert list_visibility(None, OWNER) == PUBLISHED


def test_default_listing_unrestricted_for_admin():
    assert list_visibility(None, ADMIN) == MATCH_ALL


@pytest.mark.parametrize("caller", [None, OWNER, ADMIN])
def test_explicit_published_applied_verbatim(caller):
    assert list_visibility(ArticleStatus.PUBLISHED, caller) == PUBLISHED


def test_anonymous_draft_request_downgraded():
    assert list_visibility(ArticleStatus.DRAFT, None) == PUBLISHED


def test_authenticated_draft_request_adds_own_drafts():
    predicate = list_visibility(ArticleStatus.DRAFT, OWNER)
    assert predicate == AnyOf((
        PUBLISHED,
        AllOf((StatusIs(ArticleStatus.DRAFT), AuthoredBy(OWNER.user_id))),
    ))


def test_archived_request():
    assert list_visibility(ArticleStatus.ARCHIVED, None) == PUBLISHED
    assert list_visibility(ArticleStatus.ARCHIVED, ADMIN) == StatusIs(ArticleStatus.ARCHIVED)
    assert list_visibility(ArticleStatus.ARCHIVED, OTHER) == AnyOf((
        PUBLISHED,
        AllOf((StatusIs(ArticleStatus.ARCHIVED), AuthoredBy(OTHER.user_id))),
    ))
