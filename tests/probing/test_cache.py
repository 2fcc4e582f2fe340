"""Tests for the on-disk Feature Report cache."""

from pathlib import Path

from conformix.models.enums import EndpointDirection
from conformix.observability.metrics import get_metrics
from conformix.probing.cache import FeatureCache, cache_file_stem, render_text
from conformix.testing.fixtures import make_feature_report


class TestCacheFileStem:
    """Tests for identity to file name mapping."""

    def test_host_and_port_kept(self) -> None:
        assert cache_file_stem("localhost:4433") == "localhost:4433"

    def test_unsafe_characters_replaced(self) -> None:
        assert cache_file_stem("../etc/passwd") == ".._etc_passwd"
        assert cache_file_stem("host name") == "host_name"


class TestFeatureCache:
    """Tests for FeatureCache."""

    def test_miss_returns_none(self, tmp_path: Path) -> None:
        assert FeatureCache(tmp_path).load("localhost:4433") is None

    def test_store_then_load(self, tmp_path: Path) -> None:
        """Test a stored report loads back unchanged and counts as a hit."""
        cache = FeatureCache(tmp_path / "cache")
        report = make_feature_report()
        path = cache.store(report)

        assert path == tmp_path / "cache" / "localhost:4433.json"
        assert cache.load("localhost:4433") == report
        assert get_metrics().get_counter("conformix_cache_hits_total") == 1.0

    def test_store_writes_text_companion(self, tmp_path: Path) -> None:
        cache = FeatureCache(tmp_path)
        report = make_feature_report(EndpointDirection.CLIENT)
        cache.store(report)

        text = cache.text_path_for(report.identity).read_text(encoding="utf-8")
        assert "Target:          4433" in text
        assert "Direction:       client" in text
        assert "TLS_AES_128_GCM_SHA256" in text

    def test_corrupt_entry_is_a_miss(self, tmp_path: Path) -> None:
        """Test an unreadable entry is treated as a miss, not an error."""
        cache = FeatureCache(tmp_path)
        cache.path_for("localhost:4433").write_text("{not json", encoding="utf-8")
        assert cache.load("localhost:4433") is None
        assert get_metrics().get_counter("conformix_cache_hits_total") == 0.0

    def test_invalid_schema_is_a_miss(self, tmp_path: Path) -> None:
        cache = FeatureCache(tmp_path)
        cache.path_for("localhost:4433").write_text('{"identity": ""}', encoding="utf-8")
        assert cache.load("localhost:4433") is None

    def test_clear(self, tmp_path: Path) -> None:
        cache = FeatureCache(tmp_path)
        report = make_feature_report()
        cache.store(report)

        assert cache.clear(report.identity)
        assert not cache.path_for(report.identity).exists()
        assert not cache.text_path_for(report.identity).exists()
        assert not cache.clear(report.identity)


class TestRenderText:
    """Tests for the human-readable rendering."""

    def test_lists_minimum_key_sizes(self) -> None:
        text = render_text(make_feature_report())
        assert "Min rsa key:     2048" in text
        assert "Fragmentation:   tolerated" in text

    def test_empty_values_render_as_dash(self) -> None:
        report = make_feature_report(
            extensions=[], min_certificate_key_size={}, record_fragmentation=False
        )
        text = render_text(report)
        assert "Extensions:      -" in text
        assert "Min key sizes:   -" in text
        assert "Fragmentation:   not tolerated" in text
