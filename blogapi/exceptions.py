"""
Typed application errors.

Every failure a service can report is one subclass of ``AppError``.  Each
class carries its own machine-readable ``code``, HTTP ``status_code`` and
default user-facing ``message``; the exception handlers registered in
``blogapi.main`` render them into the standard response envelope.
"""


class AppError(Exception):
    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: dict | list | None = None) -> None:
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------

class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request data"


class InvalidParentComment(ValidationError):
    code = "INVALID_PARENT_COMMENT"
    message = "Parent comment does not accept replies on this article"


class PasswordMismatch(ValidationError):
    code = "PASSWORD_MISMATCH"
    message = "Passwords do not match"


class WeakPassword(ValidationError):
    code = "WEAK_PASSWORD"
    message = "Password is too weak"


class CategoryInUse(ValidationError):
    code = "CATEGORY_IN_USE"
    message = "Category still has articles and cannot be deleted"


class TagInUse(ValidationError):
    code = "TAG_IN_USE"
    message = "Tag is still attached to articles and cannot be deleted"


# ---------------------------------------------------------------------------
# 401 / 403
# ---------------------------------------------------------------------------

class Unauthenticated(AppError):
    code = "UNAUTHENTICATED"
    status_code = 401
    message = "Authentication required"


class InvalidToken(Unauthenticated):
    code = "INVALID_TOKEN"
    message = "Invalid authentication token"


class TokenExpired(Unauthenticated):
    code = "TOKEN_EXPIRED"
    message = "Authentication token has expired"


class InvalidCredentials(Unauthenticated):
    code = "INVALID_CREDENTIALS"
    message = "Incorrect email or password"


class InvalidOldPassword(Unauthenticated):
    code = "INVALID_OLD_PASSWORD"
    message = "Current password is incorrect"


class AccountDisabled(AppError):
    code = "ACCOUNT_DISABLED"
    status_code = 403
    message = "Account has been disabled"


class Forbidden(AppError):
    code = "FORBIDDEN"
    status_code = 403
    message = "You do not have permission to perform this action"


# ---------------------------------------------------------------------------
# 404
# ---------------------------------------------------------------------------

class NotFound(AppError):
    code = "NOT_FOUND"
    status_code = 404
    message = "Resource not found"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    message = "User not found"


class ArticleNotFound(NotFound):
    code = "ARTICLE_NOT_FOUND"
    message = "Article not found"


class CategoryNotFound(NotFound):
    code = "CATEGORY_NOT_FOUND"
    message = "Category not found"


class TagNotFound(NotFound):
    code = "TAG_NOT_FOUND"
    message = "Tag not found"


class CommentNotFound(NotFound):
    code = "COMMENT_NOT_FOUND"
    message = "Comment not found"


class ParentCommentNotFound(NotFound):
    code = "PARENT_COMMENT_NOT_FOUND"
    message = "Parent comment not found"


# ---------------------------------------------------------------------------
# 409
# ---------------------------------------------------------------------------

class Conflict(AppError):
    code = "CONFLICT"
    status_code = 409
    message = "Resource already exists"


class SlugExists(Conflict):
    code = "SLUG_EXISTS"
    message = "Slug is already in use"


class EmailExists(Conflict):
    code = "EMAIL_EXISTS"
    message = "Email is already registered"


class UsernameExists(Conflict):
    code = "USERNAME_EXISTS"
    message = "Username is already taken"


class CategoryNameExists(Conflict):
    code = "CATEGORY_NAME_EXISTS"
    message = "A category with this name already exists"


class TagNameExists(Conflict):
    code = "TAG_NAME_EXISTS"
    message = "A tag with this name already exists"


class LikeConflict(Conflict):
    code = "LIKE_CONFLICT"
    message = "Like state changed concurrently, please retry"
