from category_tree.middleware.request_log import RequestLoggingMiddleware  # noqa: F401
