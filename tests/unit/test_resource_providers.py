"""Unit tests for the resource store backends."""

import io

import pytest

from staging_store.adapters.outbound.file_resource import FileResourceProvider
from staging_store.domain.exceptions import ResourceError, ResourceNotFoundError


@pytest.mark.unit
class TestResourceInstance:
    """Behaviour shared by every backend."""

    def test_put_and_read_at(self, provider):
        instance = provider.new_instance("pieces/abc")
        assert instance.put(io.BytesIO(b"0123456789")) == 10

        assert instance.size() == 10
        assert instance.read_at(0, 4) == b"0123"
        assert instance.read_at(8, 10) == b"89"
        assert instance.read_at(10, 5) == b""

    def test_put_replaces_entry(self, provider):
        instance = provider.new_instance("pieces/abc")
        instance.put(io.BytesIO(b"long content"))
        instance.put(io.BytesIO(b"short"))
        assert provider.new_instance("pieces/abc").read_at(0, 100) == b"short"

    def test_missing_instance(self, provider):
        instance = provider.new_instance("pieces/missing")
        with pytest.raises(ResourceNotFoundError):
            instance.size()
        with pytest.raises(ResourceNotFoundError):
            instance.read_at(0, 1)
        with pytest.raises(ResourceNotFoundError):
            instance.delete()

    def test_negative_read_offset(self, provider):
        instance = provider.new_instance("pieces/abc")
        instance.put(io.BytesIO(b"data"))
        with pytest.raises(ValueError):
            instance.read_at(-1, 2)

    def test_list_children(self, provider):
        provider.new_instance("dir/b.1").put(io.BytesIO(b"b"))
        provider.new_instance("dir/a.1").put(io.BytesIO(b"a"))
        assert provider.new_instance("dir").list_children() == ["a.1", "b.1"]

    def test_list_missing_container(self, provider):
        with pytest.raises(ResourceNotFoundError):
            provider.new_instance("nowhere").list_children()

    def test_container_not_sized(self, provider):
        provider.new_instance("dir/a").put(io.BytesIO(b"a"))
        with pytest.raises(ResourceNotFoundError):
            provider.new_instance("dir").size()

    def test_delete_entry_then_container(self, provider):
        entry = provider.new_instance("dir/a")
        entry.put(io.BytesIO(b"a"))

        with pytest.raises(ResourceError):
            provider.new_instance("dir").delete()

        entry.delete()
        assert provider.new_instance("dir").list_children() == []
        provider.new_instance("dir").delete()
        with pytest.raises(ResourceNotFoundError):
            provider.new_instance("dir").list_children()

    def test_empty_put(self, provider):
        instance = provider.new_instance("pieces/empty")
        assert instance.put(io.BytesIO(b"")) == 0
        assert instance.size() == 0

    def test_invalid_key(self, provider):
        with pytest.raises(ResourceError):
            provider.new_instance("/")


@pytest.mark.unit
class TestFileResourceProvider:
    """Filesystem specifics."""

    def test_creates_root(self, tmp_path):
        root = tmp_path / "a" / "b"
        FileResourceProvider(root)
        assert root.is_dir()

    def test_rejects_escaping_keys(self, tmp_path):
        provider = FileResourceProvider(tmp_path / "cache")
        with pytest.raises(ResourceError):
            provider.new_instance("../outside")

    def test_put_leaves_no_temporary_files(self, tmp_path):
        provider = FileResourceProvider(tmp_path)
        provider.new_instance("dir/entry").put(io.BytesIO(b"x" * 4096))
        assert [p.name for p in (tmp_path / "dir").iterdir()] == ["entry"]

    def test_temporary_files_not_listed(self, tmp_path):
        provider = FileResourceProvider(tmp_path)
        provider.new_instance("dir/entry").put(io.BytesIO(b"x"))
        (tmp_path / "dir" / ".entry.abc.tmp").write_bytes(b"partial")
        assert provider.new_instance("dir").list_children() == ["entry"]
