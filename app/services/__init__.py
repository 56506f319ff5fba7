# Services package.
#
# The comment pipeline is split by concern:
#
#   validation       - payload sanitisation and field checks
#   existence        - cached post/comment existence checks
#   comment_store    - SQL data access (the only module issuing queries)
#   comment_service  - request pipeline returning RestResponse envelopes
#
# CommentService receives its store and cache by constructor injection;
# the router layer builds it per request via ``get_comment_service``.
