# shop/linker.py
import sqlite3
from typing import Optional

from .errors import (
    AuthorizationError,
    NotFoundError,
    Result,
    ValidationError,
    failure,
    success,
)
from .logger import get_logger
from .models import ProductFolderLink, User
from .storage import FolderRepository, LinkRepository, ProductRepository, UsageRepository
from .usage import track_use_time

logger = get_logger(__name__)


class ProductFolderLinker:
    """
    Put a product into a folder.

    Checks run in a fixed order so the reported error is deterministic:
    product exists, folder exists, caller owns both, pair not yet linked.
    """

    def __init__(
        self,
        products: ProductRepository,
        folders: FolderRepository,
        links: LinkRepository,
        usage: Optional[UsageRepository] = None,
    ):
        self.products = products
        self.folders = folders
        self.links = links
        self.usage = usage

    @track_use_time("caller")
    def link(self, product_id: int, folder_id: int, caller: User) -> Result[ProductFolderLink]:
        product = self.products.find_by_id(product_id)
        if product is None:
            return failure(NotFoundError(f"Product {product_id} does not exist."))

        folder = self.folders.find_by_id(folder_id)
        if folder is None:
            return failure(NotFoundError(f"Folder {folder_id} does not exist."))

        if product.owner_id != caller.id or folder.owner_id != caller.id:
            logger.warning(
                "User %s tried to link product %s (owner %s) to folder %s (owner %s).",
                caller.id, product_id, product.owner_id, folder_id, folder.owner_id,
            )
            return failure(
                AuthorizationError("The product or the folder does not belong to you.")
            )

        if self.links.find_by_product_and_folder(product, folder) is not None:
            return failure(
                ValidationError(f"Product {product_id} is already in folder {folder_id}.")
            )

        try:
            link = self.links.save(
                ProductFolderLink(id=None, product_id=product_id, folder_id=folder_id)
            )
        except sqlite3.IntegrityError:
            return failure(
                ValidationError(f"Product {product_id} is already in folder {folder_id}.")
            )

        logger.info("Linked product %s to folder %s for user %s.", product_id, folder_id, caller.id)
        return success(link)
