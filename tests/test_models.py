"""Tests for asset_uploader models."""
import pytest

from asset_uploader.errors import PermanentRequestError
from asset_uploader.models import (
    DEFAULT_MAX_CHUNK_SIZE,
    DEFAULT_MIN_CHUNK_SIZE,
    HARD_MAX_CHUNK_SIZE,
    Asset,
    BatchState,
    FileSource,
    KiB,
    MiB,
    ServerLimits,
    UploadBatch,
    UploadConfig,
)
from asset_uploader.orchestrator.core import collect_assets


class TestAsset:
    def test_from_bytes(self):
        asset = Asset.from_bytes("assets/a.png", b"hello", doc_id="doc1")
        assert asset.size_bytes == 5
        assert asset.content.read(1, 3) == b"el"
        assert asset.manifest_entry() == {"path": "assets/a.png", "size": 5, "docId": "doc1"}

    def test_from_file(self, tmp_path):
        file_path = tmp_path / "photo.jpg"
        file_path.write_bytes(b"0123456789")

        asset = Asset.from_file(file_path)

        assert asset.path == "assets/photo.jpg"
        assert asset.size_bytes == 10
        assert isinstance(asset.content, FileSource)
        assert asset.content.read(2, 5) == b"234"
        assert asset.manifest_entry()["docId"] == ""

    def test_immutable(self):
        asset = Asset.from_bytes("a", b"x")
        with pytest.raises(Exception):
            asset.path = "b"

    def test_batch_total_bytes(self):
        batch = UploadBatch("up", [Asset.from_bytes("a", b"xx"), Asset.from_bytes("b", b"yyy")])
        assert batch.total_bytes == 5


class TestCollectAssets:
    def test_deduplicates_by_path(self):
        first = Asset.from_bytes("assets/a.png", b"1")
        second = Asset.from_bytes("assets/a.png", b"22")
        other = Asset.from_bytes("assets/b.png", b"3")

        assert collect_assets([first, second, other]) == [first, other]

    def test_rejects_negative_size(self):
        bad = Asset(path="x", size_bytes=-1, content=None)
        with pytest.raises(PermanentRequestError):
            collect_assets([bad])

    def test_rejects_empty_path(self):
        with pytest.raises(PermanentRequestError):
            collect_assets([Asset.from_bytes("", b"1")])


class TestServerLimits:
    def test_defaults_when_missing(self):
        limits = ServerLimits.from_payload(None)
        assert limits.min_chunk_size == DEFAULT_MIN_CHUNK_SIZE
        assert limits.max_chunk_size == DEFAULT_MAX_CHUNK_SIZE

    def test_byte_values(self):
        limits = ServerLimits.from_payload({"minChunkSize": 64 * KiB, "maxChunkSize": 2 * MiB})
        assert limits == ServerLimits(64 * KiB, 2 * MiB)

    def test_site_config_units(self):
        limits = ServerLimits.from_payload({"minChunkSizeKb": 128, "maxChunkSizeMb": 4})
        assert limits == ServerLimits(128 * KiB, 4 * MiB)

    def test_min_above_max_is_normalized(self):
        limits = ServerLimits.from_payload({"minChunkSize": 4 * MiB, "maxChunkSize": 1 * MiB})
        assert limits.min_chunk_size <= limits.max_chunk_size
        assert limits.max_chunk_size == 1 * MiB

    def test_max_capped_by_hard_ceiling(self):
        limits = ServerLimits.from_payload({"maxChunkSize": 1024 * MiB})
        assert limits.max_chunk_size == HARD_MAX_CHUNK_SIZE

    def test_garbage_falls_back(self):
        limits = ServerLimits.from_payload({"minChunkSize": "abc", "maxChunkSize": -5})
        assert limits == ServerLimits()

    @pytest.mark.parametrize(
        "payload",
        [
            ["x"],
            "8MB",
            42,
            {"maxChunkSize": "inf"},
            {"minChunkSize": 1e400},
            {"minChunkSizeKb": float("nan"), "maxChunkSizeMb": "-inf"},
        ],
    )
    def test_malformed_payload_uses_defaults(self, payload):
        assert ServerLimits.from_payload(payload) == ServerLimits()


class TestUploadConfig:
    def test_defaults(self):
        config = UploadConfig()
        assert config.max_asset_concurrency == 4
        assert config.max_chunk_concurrency == 4
        assert config.chunk_retries == 3

    def test_validation(self):
        with pytest.raises(ValueError):
            UploadConfig(max_asset_concurrency=0)
        with pytest.raises(ValueError):
            UploadConfig(chunk_retries=-1)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SHARE_MAX_ASSET_CONCURRENCY", "6")
        monkeypatch.setenv("SHARE_CHUNK_RETRIES", "1")
        monkeypatch.delenv("SHARE_MAX_CHUNK_CONCURRENCY", raising=False)

        config = UploadConfig.from_env(max_chunk_concurrency=2)

        assert config.max_asset_concurrency == 6
        assert config.max_chunk_concurrency == 2
        assert config.chunk_retries == 1

    def test_from_env_invalid(self, monkeypatch):
        monkeypatch.setenv("SHARE_MAX_ASSET_CONCURRENCY", "many")
        with pytest.raises(ValueError, match="SHARE_MAX_ASSET_CONCURRENCY"):
            UploadConfig.from_env()


def test_batch_state_settled():
    assert BatchState.FINALIZED.settled
    assert BatchState.ABORTED.settled
    assert not BatchState.IN_FLIGHT.settled
