from category_tree.db.base import Base  # noqa: F401
from category_tree.models.category import Category  # noqa: F401
