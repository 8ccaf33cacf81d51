import sys, pathlib; sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

import pytest

from llm_qbank_gen.adapters.mock_adapter import MockAdapter
from llm_qbank_gen.core.errors import FileOperationError
from llm_qbank_gen.core.file_store import RemoteFileStore


class StickyAdapter(MockAdapter):
    def delete_file(self, file_id):
        self.deleted.append(file_id)
        raise FileOperationError("delete", 500, "storage busy")


def test_uploaded_deletes_once_on_normal_exit(tmp_path):
    f = tmp_path / "a.png"
    f.write_bytes(b"x")
    provider = MockAdapter()
    store = RemoteFileStore(provider)

    with store.uploaded(f, "a.png") as handle:
        assert store.list() == [handle]

    assert provider.deleted == [handle.provider_file_id]


def test_uploaded_deletes_when_body_raises(tmp_path):
    f = tmp_path / "a.png"
    f.write_bytes(b"x")
    provider = MockAdapter()

    with pytest.raises(RuntimeError):
        with RemoteFileStore(provider).uploaded(f, "a.png"):
            raise RuntimeError("boom")

    assert len(provider.deleted) == 1
    assert provider.files == {}


def test_failed_delete_does_not_mask_result(tmp_path):
    f = tmp_path / "a.png"
    f.write_bytes(b"x")
    provider = StickyAdapter()

    with RemoteFileStore(provider).uploaded(f, "a.png") as handle:
        result = handle.provider_file_id

    assert provider.deleted == [result]


def test_purge_deletes_everything(tmp_path):
    f = tmp_path / "a.png"
    f.write_bytes(b"x")
    provider = MockAdapter()
    store = RemoteFileStore(provider)
    store.upload(f, "one.png")
    store.upload(f, "two.png")

    assert store.purge() == 2
    assert store.list() == []
