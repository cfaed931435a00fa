from category_tree.repositories.categories import (  # noqa: F401
    UNSCOPED,
    CategoryStore,
    InMemoryCategoryStore,
    SqlCategoryStore,
    StoreFactory,
    sql_store_factory,
)
