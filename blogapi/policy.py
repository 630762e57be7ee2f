"""
Visibility and mutation rules for content.

Pure functions with no I/O.  Every service consults these instead of
comparing roles and owner ids inline, so the rules live in one place.
"""
from blogapi.filters import MATCH_ALL, AuthoredBy, Predicate, StatusIs, all_of, any_of
from blogapi.models import Article, ArticleStatus, Comment
from blogapi.security import Caller


def _owns_or_admin(owner_id: int, caller: Caller | None) -> bool:
    if caller is None:
        return False
    return caller.user_id == owner_id or caller.is_admin


def can_view_article(article: Article, caller: Caller | None) -> bool:
    if article.status == ArticleStatus.PUBLISHED:
        return True
    return _owns_or_admin(article.author_id, caller)


def can_mutate_article(article: Article, caller: Caller | None) -> bool:
    return _owns_or_admin(article.author_id, caller)


def can_mutate_comment(comment: Comment, caller: Caller | None) -> bool:
    return _owns_or_admin(comment.author_id, caller)


def can_view_unpublished_by(author_id: int, caller: Caller | None) -> bool:
    """Whether *caller* may see the drafts and archived articles of *author_id*."""
    return _owns_or_admin(author_id, caller)


def can_manage_taxonomy(caller: Caller | None) -> bool:
    return caller is not None and caller.is_admin


def list_visibility(requested: ArticleStatus | None, caller: Caller | None) -> Predicate:
    """
    Return the status/ownership predicate applied to article listings.

    - no status requested: PUBLISHED only, unrestricted for ADMIN;
    - PUBLISHED: applied as requested;
    - DRAFT: anonymous callers get PUBLISHED only, authenticated callers
      get PUBLISHED plus their own drafts;
    - ARCHIVED: ADMIN sees every archived article, other authenticated
      callers get PUBLISHED plus their own archived articles, anonymous
      callers get PUBLISHED only.
    """
    published = StatusIs(ArticleStatus.PUBLISHED)
    if requested is None:
        return MATCH_ALL if caller is not None and caller.is_admin else published
    if requested == ArticleStatus.PUBLISHED:
        return published
    if caller is None:
        return published
    if requested == ArticleStatus.ARCHIVED and caller.is_admin:
        return StatusIs(ArticleStatus.ARCHIVED)
    return any_of(published, all_of(StatusIs(requested), AuthoredBy(caller.user_id)))
