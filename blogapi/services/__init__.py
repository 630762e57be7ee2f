# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for one part of the domain:
#
#   auth_service      — token resolution, registration, login
#   user_service      — profiles and self-service account updates
#   article_service   — Article CRUD, visibility-aware listing, view counts
#   comment_service   — comments and single-level replies
#   like_service      — like toggling and the denormalised like counter
#   taxonomy_service  — categories and tags, cached reads
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
