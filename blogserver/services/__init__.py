# Services package.
#
#   post_store  - id assignment, lookup, search and deletion for Post
#
# Service functions accept an AsyncSession as their first argument so that
# the router layer controls the session lifetime and transaction boundary
# via the ``get_db`` dependency.
