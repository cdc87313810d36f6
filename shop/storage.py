# shop/storage.py
import contextlib
import dataclasses
import datetime
import os
import sqlite3
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import pytz

from .logger import get_logger
from .models import (
    Folder,
    Page,
    PageRequest,
    Product,
    ProductFolderLink,
    Role,
    Timestamps,
    User,
)

logger = get_logger(__name__)

DB_PATH = os.getenv("DB_PATH", "/data/select_shop.sqlite3")

# Columns a product listing may be ordered by.
SORT_COLUMNS = (
    "id",
    "title",
    "link",
    "image",
    "lowest_price",
    "target_price",
    "created_at",
    "modified_at",
)

_PRODUCT_COLUMNS = (
    "p.id, p.title, p.image, p.link, p.lowest_price, p.target_price, "
    "p.owner_id, p.created_at, p.modified_at"
)


@contextlib.contextmanager
def _connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """Open a connection; commit on success, roll back on error, always close."""
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    con = sqlite3.connect(db_path)
    con.execute("PRAGMA foreign_keys = ON")
    try:
        with con:
            yield con
    finally:
        con.close()


def now_utc_iso() -> str:
    return datetime.datetime.now(tz=pytz.UTC).isoformat()


def ensure_db(db_path: str = DB_PATH):
    with _connect(db_path) as con:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                role TEXT NOT NULL
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS products (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                image TEXT NOT NULL,
                link TEXT NOT NULL,
                lowest_price INTEGER NOT NULL,
                target_price INTEGER NOT NULL DEFAULT 0,
                owner_id INTEGER NOT NULL REFERENCES users(id),
                created_at TEXT,
                modified_at TEXT
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS folders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                owner_id INTEGER NOT NULL REFERENCES users(id),
                created_at TEXT,
                modified_at TEXT,
                UNIQUE (owner_id, name)
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS product_folders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                product_id INTEGER NOT NULL REFERENCES products(id),
                folder_id INTEGER NOT NULL REFERENCES folders(id),
                created_at TEXT,
                modified_at TEXT,
                UNIQUE (product_id, folder_id)
            )
        """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS api_use_time (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
                total_time INTEGER NOT NULL DEFAULT 0
            )
        """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS ix_products_owner ON products (owner_id)"
        )
    logger.debug("Schema ensured at %s", db_path)


def _row_to_product(row: Sequence) -> Product:
    pid, title, image, link, lowest, target, owner_id, created, modified = row
    return Product(
        id=pid,
        title=title,
        image=image,
        link=link,
        lowest_price=lowest,
        target_price=target,
        owner_id=owner_id,
        stamps=Timestamps(created or "", modified or ""),
    )


def _row_to_folder(row: Sequence) -> Folder:
    fid, name, owner_id, created, modified = row
    return Folder(
        id=fid,
        name=name,
        owner_id=owner_id,
        stamps=Timestamps(created or "", modified or ""),
    )


def _order_by(pageable: PageRequest) -> str:
    if pageable.sort_column not in SORT_COLUMNS:
        raise ValueError(f"Unsupported sort column {pageable.sort_column!r}")
    direction = "ASC" if pageable.ascending else "DESC"
    return f"ORDER BY p.{pageable.sort_column} {direction}, p.id ASC"


class UserRepository:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path

    def save(self, username: str, role: Role = Role.USER) -> User:
        with _connect(self.db_path) as con:
            cur = con.execute(
                "INSERT INTO users (username, role) VALUES (?, ?)",
                (username, role.value),
            )
            return User(id=cur.lastrowid, username=username, role=role)

    def find_by_id(self, user_id: int) -> Optional[User]:
        with _connect(self.db_path) as con:
            row = con.execute(
                "SELECT id, username, role FROM users WHERE id=?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return User(id=row[0], username=row[1], role=Role(row[2]))


class ProductRepository:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path

    def find_by_id(self, product_id: int) -> Optional[Product]:
        with _connect(self.db_path) as con:
            row = con.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE p.id=?",
                (product_id,),
            ).fetchone()
        return _row_to_product(row) if row else None

    def find_all(self) -> List[Product]:
        with _connect(self.db_path) as con:
            rows = con.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p ORDER BY p.id"
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def find_all_by_owner(self, owner: User) -> List[Product]:
        with _connect(self.db_path) as con:
            rows = con.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p "
                "WHERE p.owner_id=? ORDER BY p.id",
                (owner.id,),
            ).fetchall()
        return [_row_to_product(r) for r in rows]

    def find_all_paged(self, pageable: PageRequest) -> Page[Product]:
        return self._paged("FROM products p", (), pageable)

    def find_all_by_owner_paged(
        self, owner: User, pageable: PageRequest
    ) -> Page[Product]:
        return self._paged(
            "FROM products p WHERE p.owner_id=?", (owner.id,), pageable
        )

    def find_all_by_owner_and_folder(
        self, owner: User, folder_id: int, pageable: PageRequest
    ) -> Page[Product]:
        return self._paged(
            "FROM products p "
            "JOIN product_folders pf ON pf.product_id = p.id "
            "WHERE p.owner_id=? AND pf.folder_id=?",
            (owner.id, folder_id),
            pageable,
        )

    def _paged(
        self, from_clause: str, params: Tuple, pageable: PageRequest
    ) -> Page[Product]:
        order_by = _order_by(pageable)
        with _connect(self.db_path) as con:
            total = con.execute(f"SELECT COUNT(*) {from_clause}", params).fetchone()[0]
            rows = con.execute(
                f"SELECT {_PRODUCT_COLUMNS} {from_clause} {order_by} LIMIT ? OFFSET ?",
                params + (pageable.size, pageable.offset),
            ).fetchall()

        products = [_row_to_product(r) for r in rows]
        folders = self.folders_for([p.id for p in products])
        content = [
            dataclasses.replace(p, folders=tuple(folders.get(p.id, ()))) for p in products
        ]
        return Page(
            content=tuple(content),
            number=pageable.page,
            size=pageable.size,
            total_elements=total or 0,
        )

    def folders_for(self, product_ids: List[int]) -> Dict[int, List[Folder]]:
        """Return mapping product_id -> folders the product is linked to."""
        if not product_ids:
            return {}
        marks = ",".join("?" for _ in product_ids)
        with _connect(self.db_path) as con:
            rows = con.execute(
                f"""
                SELECT pf.product_id, f.id, f.name, f.owner_id, f.created_at, f.modified_at
                FROM product_folders pf
                JOIN folders f ON f.id = pf.folder_id
                WHERE pf.product_id IN ({marks})
                ORDER BY pf.id
            """,
                tuple(product_ids),
            ).fetchall()

        out: Dict[int, List[Folder]] = {}
        for row in rows:
            out.setdefault(row[0], []).append(_row_to_folder(row[1:]))
        return out

    def save(self, product: Product) -> Product:
        """Insert a new product (id is None) or overwrite an existing row."""
        ts = now_utc_iso()
        with _connect(self.db_path) as con:
            if product.id is None:
                cur = con.execute(
                    """
                    INSERT INTO products (
                        title, image, link, lowest_price, target_price,
                        owner_id, created_at, modified_at
                    )
                    VALUES (?,?,?,?,?,?,?,?)
                """,
                    (
                        product.title,
                        product.image,
                        product.link,
                        product.lowest_price,
                        product.target_price,
                        product.owner_id,
                        ts,
                        ts,
                    ),
                )
                return dataclasses.replace(
                    product, id=cur.lastrowid, stamps=Timestamps(ts, ts)
                )

            con.execute(
                """
                UPDATE products SET
                    title=?, image=?, link=?, lowest_price=?, target_price=?,
                    modified_at=?
                WHERE id=?
            """,
                (
                    product.title,
                    product.image,
                    product.link,
                    product.lowest_price,
                    product.target_price,
                    ts,
                    product.id,
                ),
            )
        return dataclasses.replace(
            product, stamps=Timestamps(product.stamps.created_at, ts)
        )

    def update_target_price(self, product_id: int, target_price: int) -> Optional[Product]:
        """Set only target_price; returns the fresh row, or None if missing."""
        with _connect(self.db_path) as con:
            cur = con.execute(
                "UPDATE products SET target_price=?, modified_at=? WHERE id=?",
                (target_price, now_utc_iso(), product_id),
            )
            if cur.rowcount == 0:
                return None
            row = con.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE p.id=?",
                (product_id,),
            ).fetchone()
        return _row_to_product(row)

    def update_lowest_price(self, product_id: int, lowest_price: int) -> bool:
        """Set only lowest_price. False when the product does not exist."""
        with _connect(self.db_path) as con:
            cur = con.execute(
                "UPDATE products SET lowest_price=?, modified_at=? WHERE id=?",
                (lowest_price, now_utc_iso(), product_id),
            )
            return cur.rowcount > 0


class FolderRepository:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path

    def find_by_id(self, folder_id: int) -> Optional[Folder]:
        with _connect(self.db_path) as con:
            row = con.execute(
                "SELECT id, name, owner_id, created_at, modified_at "
                "FROM folders WHERE id=?",
                (folder_id,),
            ).fetchone()
        return _row_to_folder(row) if row else None

    def find_all_by_owner(self, owner: User) -> List[Folder]:
        with _connect(self.db_path) as con:
            rows = con.execute(
                "SELECT id, name, owner_id, created_at, modified_at "
                "FROM folders WHERE owner_id=? ORDER BY id",
                (owner.id,),
            ).fetchall()
        return [_row_to_folder(r) for r in rows]

    def find_all_by_owner_and_name_in(
        self, owner: User, names: Sequence[str]
    ) -> List[Folder]:
        if not names:
            return []
        marks = ",".join("?" for _ in names)
        with _connect(self.db_path) as con:
            rows = con.execute(
                "SELECT id, name, owner_id, created_at, modified_at "
                f"FROM folders WHERE owner_id=? AND name IN ({marks})",
                (owner.id, *names),
            ).fetchall()
        return [_row_to_folder(r) for r in rows]

    def save_all(self, folders: Sequence[Folder]) -> List[Folder]:
        """Insert every folder in one transaction; any failure persists none."""
        ts = now_utc_iso()
        saved: List[Folder] = []
        with _connect(self.db_path) as con:
            for folder in folders:
                cur = con.execute(
                    """
                    INSERT INTO folders (name, owner_id, created_at, modified_at)
                    VALUES (?,?,?,?)
                """,
                    (folder.name, folder.owner_id, ts, ts),
                )
                saved.append(
                    dataclasses.replace(
                        folder, id=cur.lastrowid, stamps=Timestamps(ts, ts)
                    )
                )
        return saved


class LinkRepository:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path

    def find_by_product_and_folder(
        self, product: Product, folder: Folder
    ) -> Optional[ProductFolderLink]:
        with _connect(self.db_path) as con:
            row = con.execute(
                "SELECT id, product_id, folder_id, created_at, modified_at "
                "FROM product_folders WHERE product_id=? AND folder_id=?",
                (product.id, folder.id),
            ).fetchone()
        if row is None:
            return None
        return ProductFolderLink(
            id=row[0],
            product_id=row[1],
            folder_id=row[2],
            stamps=Timestamps(row[3] or "", row[4] or ""),
        )

    def count_for_product(self, product_id: int) -> int:
        with _connect(self.db_path) as con:
            row = con.execute(
                "SELECT COUNT(*) FROM product_folders WHERE product_id=?",
                (product_id,),
            ).fetchone()
        return row[0] if row and row[0] is not None else 0

    def save(self, link: ProductFolderLink) -> ProductFolderLink:
        """Raises sqlite3.IntegrityError when the pair is already linked."""
        ts = now_utc_iso()
        with _connect(self.db_path) as con:
            cur = con.execute(
                """
                INSERT INTO product_folders (product_id, folder_id, created_at, modified_at)
                VALUES (?,?,?,?)
            """,
                (link.product_id, link.folder_id, ts, ts),
            )
            link_id = cur.lastrowid
        return dataclasses.replace(link, id=link_id, stamps=Timestamps(ts, ts))


class UsageRepository:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path

    def add_use_time(self, user_id: int, millis: int):
        with _connect(self.db_path) as con:
            con.execute(
                """
                INSERT INTO api_use_time (user_id, total_time)
                VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    total_time = total_time + excluded.total_time
            """,
                (user_id, millis),
            )

    def get_total(self, user_id: int) -> int:
        with _connect(self.db_path) as con:
            row = con.execute(
                "SELECT total_time FROM api_use_time WHERE user_id=?", (user_id,)
            ).fetchone()
        return row[0] if row and row[0] is not None else 0
