# shop/products.py
import sqlite3
from typing import List, Optional

from .errors import NotFoundError, Result, ValidationError, failure, success
from .logger import get_logger
from .models import (
    MIN_TARGET_PRICE,
    Item,
    Page,
    PageRequest,
    Product,
    ProductRequest,
    User,
)
from .storage import SORT_COLUMNS, ProductRepository, UsageRepository
from .usage import track_use_time

logger = get_logger(__name__)

# Legacy web clients send camelCase and abbreviated field names.
_LEGACY_SORT_FIELDS = {
    "lprice": "lowest_price",
    "myprice": "target_price",
    "createdAt": "created_at",
    "modifiedAt": "modified_at",
    "lowestPrice": "lowest_price",
    "targetPrice": "target_price",
}


def build_page_request(
    page: int, size: int, sort_field: str, ascending: bool
) -> Result[PageRequest]:
    """Validate listing arguments and map ``sort_field`` to a storage column."""
    if page < 0:
        return failure(ValidationError(f"Page index must be >= 0, got {page}."))
    if size < 1:
        return failure(ValidationError(f"Page size must be >= 1, got {size}."))
    column = _LEGACY_SORT_FIELDS.get(sort_field, sort_field)
    if column not in SORT_COLUMNS:
        return failure(ValidationError(f"Cannot sort products by {sort_field!r}."))
    return success(PageRequest(page=page, size=size, sort_column=column, ascending=ascending))


class ProductCatalog:
    """Create, reprice and list tracked products."""

    def __init__(
        self,
        products: ProductRepository,
        usage: Optional[UsageRepository] = None,
    ):
        self.products = products
        self.usage = usage

    @track_use_time("owner")
    def create(self, request: ProductRequest, owner: User) -> Result[Product]:
        try:
            product = self.products.save(
                Product(
                    id=None,
                    title=request.title,
                    image=request.image,
                    link=request.link,
                    lowest_price=request.lowest_price,
                    target_price=0,
                    owner_id=owner.id,
                )
            )
        except sqlite3.IntegrityError as e:
            # owner row missing (foreign key)
            logger.warning("Cannot create product for user %s: %s", owner.id, e)
            return failure(NotFoundError(f"User {owner.id} does not exist."))
        logger.info(
            "Tracking product %s '%s' for user %s (lowest=%d).",
            product.id, product.title, owner.id, product.lowest_price,
        )
        return success(product)

    def update_target_price(
        self, product_id: int, new_target_price: int
    ) -> Result[Product]:
        # Ownership is checked by the interactive layer before this is called.
        if new_target_price < MIN_TARGET_PRICE:
            return failure(
                ValidationError(
                    f"Invalid target price {new_target_price}; "
                    f"it must be at least {MIN_TARGET_PRICE}."
                )
            )

        updated = self.products.update_target_price(product_id, new_target_price)
        if updated is None:
            return failure(NotFoundError(f"Product {product_id} not found."))

        logger.info("Product %s target price set to %d.", product_id, new_target_price)
        return success(updated)

    def update_lowest_price_from_search(
        self, product_id: int, item: Item
    ) -> Result[None]:
        if not self.products.update_lowest_price(product_id, item.lowest_price):
            return failure(NotFoundError(f"Product {product_id} does not exist."))

        logger.debug("Product %s lowest price set to %d.", product_id, item.lowest_price)
        return success()

    @track_use_time("owner")
    def list_for_owner(
        self,
        owner: User,
        page: int,
        size: int,
        sort_field: str = "id",
        ascending: bool = True,
    ) -> Result[Page[Product]]:
        """
        Page through products. Regular users see their own products; admins
        see every product with the same paging and sorting.
        """
        pageable = build_page_request(page, size, sort_field, ascending)
        if not pageable.ok:
            return pageable

        if owner.is_admin:
            return success(self.products.find_all_paged(pageable.value))
        return success(self.products.find_all_by_owner_paged(owner, pageable.value))

    def list_all(self) -> List[Product]:
        return self.products.find_all()

    @track_use_time("owner")
    def list_for_owner_in_folder(
        self,
        folder_id: int,
        owner: User,
        page: int,
        size: int,
        sort_field: str = "id",
        ascending: bool = True,
    ) -> Result[Page[Product]]:
        pageable = build_page_request(page, size, sort_field, ascending)
        if not pageable.ok:
            return pageable
        return success(
            self.products.find_all_by_owner_and_folder(owner, folder_id, pageable.value)
        )
