# shop/models.py
import enum
import math
from dataclasses import dataclass, field
from typing import Generic, Optional, Tuple, TypeVar

T = TypeVar("T")

MIN_TARGET_PRICE = 100


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class User:
    id: Optional[int]
    username: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class Timestamps:
    """Creation/modification times (ISO-8601, UTC) carried by persisted rows."""
    created_at: str = ""
    modified_at: str = ""


@dataclass(frozen=True)
class Item:
    """
    One normalized marketplace search result.
    Never persisted; callers copy what they need out of it.
    """
    title: str
    link: str
    image: str
    lowest_price: int


@dataclass(frozen=True)
class ProductRequest:
    title: str
    image: str
    link: str
    lowest_price: int

    @classmethod
    def from_item(cls, item: Item) -> "ProductRequest":
        return cls(
            title=item.title,
            image=item.image,
            link=item.link,
            lowest_price=item.lowest_price,
        )


@dataclass(frozen=True)
class Folder:
    id: Optional[int]
    name: str
    owner_id: int
    stamps: Timestamps = field(default_factory=Timestamps)


@dataclass(frozen=True)
class Product:
    """
    A tracked product. Instances are read-only snapshots of a row; prices
    change only through ProductCatalog.update_target_price and
    ProductCatalog.update_lowest_price_from_search.
    """
    id: Optional[int]
    title: str
    image: str
    link: str
    lowest_price: int
    target_price: int
    owner_id: int
    stamps: Timestamps = field(default_factory=Timestamps)
    folders: Tuple[Folder, ...] = ()

    @property
    def is_below_target(self) -> bool:
        # target_price 0 means "not set yet"
        return 0 < self.target_price and self.lowest_price <= self.target_price


@dataclass(frozen=True)
class ProductFolderLink:
    id: Optional[int]
    product_id: int
    folder_id: int
    stamps: Timestamps = field(default_factory=Timestamps)


@dataclass(frozen=True)
class PageRequest:
    """Zero-indexed page number, page size and a storage sort column."""
    page: int
    size: int
    sort_column: str = "id"
    ascending: bool = True

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass(frozen=True)
class Page(Generic[T]):
    """A zero-indexed slice of a sorted listing."""
    content: Tuple[T, ...]
    number: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total_elements / self.size)

    @property
    def is_last(self) -> bool:
        return self.number + 1 >= self.total_pages
