"""Pytest fixtures: a fresh sqlite database per test and two plain users plus an admin."""

import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from shop import storage
from shop.folders import FolderCatalog
from shop.linker import ProductFolderLinker
from shop.models import ProductRequest, Role
from shop.products import ProductCatalog


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "shop.sqlite3")
    storage.ensure_db(path)
    return path


@pytest.fixture
def users(db_path):
    repo = storage.UserRepository(db_path)
    return {
        "u1": repo.save("u1"),
        "u2": repo.save("u2"),
        "admin": repo.save("admin", Role.ADMIN),
    }


@pytest.fixture
def product_repo(db_path):
    return storage.ProductRepository(db_path)


@pytest.fixture
def folder_repo(db_path):
    return storage.FolderRepository(db_path)


@pytest.fixture
def link_repo(db_path):
    return storage.LinkRepository(db_path)


@pytest.fixture
def usage_repo(db_path):
    return storage.UsageRepository(db_path)


@pytest.fixture
def catalog(product_repo):
    return ProductCatalog(product_repo)


@pytest.fixture
def folders(folder_repo):
    return FolderCatalog(folder_repo)


@pytest.fixture
def linker(product_repo, folder_repo, link_repo):
    return ProductFolderLinker(product_repo, folder_repo, link_repo)


@pytest.fixture
def make_product(catalog):
    def _make(owner, title="Wireless Mouse", lowest_price=50000):
        request = ProductRequest(
            title=title, link="http://x", image="http://y", lowest_price=lowest_price
        )
        return catalog.create(request, owner).unwrap()

    return _make
