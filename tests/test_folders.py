from shop.errors import ValidationError
from shop.folders import find_duplicate_names
from shop.models import Folder


def test_create_and_list_folders(folders, users):
    result = folders.create_folders(["Books", "Games"], users["u1"])

    assert result.ok
    assert [f.name for f in result.value] == ["Books", "Games"]
    assert sorted(f.name for f in folders.list_for_owner(users["u1"])) == ["Books", "Games"]
    assert folders.list_for_owner(users["u2"]) == []


def test_duplicate_within_batch_persists_nothing(folders, users):
    result = folders.create_folders(["Books", "Books"], users["u1"])

    assert isinstance(result.error, ValidationError)
    assert folders.list_for_owner(users["u1"]) == []


def test_existing_name_rejects_whole_batch(folders, users):
    folders.create_folders(["Books"], users["u1"]).unwrap()

    result = folders.create_folders(["Games", "Books", "Music"], users["u1"])

    assert isinstance(result.error, ValidationError)
    assert "Books" in str(result.error)
    assert [f.name for f in folders.list_for_owner(users["u1"])] == ["Books"]


def test_same_name_allowed_for_different_owners(folders, users):
    folders.create_folders(["Books"], users["u1"]).unwrap()
    assert folders.create_folders(["Books"], users["u2"]).ok


def test_names_are_case_sensitive(folders, users):
    folders.create_folders(["Books"], users["u1"]).unwrap()
    assert folders.create_folders(["books"], users["u1"]).ok


def test_empty_batch_is_noop(folders, users):
    result = folders.create_folders([], users["u1"])
    assert result.ok
    assert result.value == []


def test_find_duplicate_names():
    existing = [Folder(id=1, name="A", owner_id=1)]
    assert find_duplicate_names(["A", "B", "B", "C", "B"], existing) == ["A", "B"]
    assert find_duplicate_names(["X", "Y"], existing) == []
