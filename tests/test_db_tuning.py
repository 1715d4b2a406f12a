"""
Tests for PostgreSQL tuning bands.
"""

import pytest

from snakk_installer.db_tuning import FIXED_HINTS, TUNING_BANDS, memory_value_mb, synthesize
from snakk_installer.models import TuningParameterSet


MEMORY_KEYS = TuningParameterSet.MEMORY_KEYS


class TestSynthesize:
    @pytest.mark.parametrize(
        "db_mem, shared_buffers, effective_cache_size",
        [
            (384, "96MB", "256MB"),
            (511, "96MB", "256MB"),
            (512, "160MB", "480MB"),
            (640, "160MB", "480MB"),
            (1024, "256MB", "768MB"),
            (2048, "512MB", "1536MB"),
            (4095, "512MB", "1536MB"),
            (4096, "1GB", "3GB"),
            (32768, "1GB", "3GB"),
        ],
    )
    def test_band_selection(self, db_mem, shared_buffers, effective_cache_size):
        tuning = synthesize(db_mem)
        assert tuning.shared_buffers == shared_buffers
        assert tuning.effective_cache_size == effective_cache_size

    def test_smallest_band_is_complete(self):
        assert synthesize(100).memory_settings() == {
            "shared_buffers": "96MB",
            "effective_cache_size": "256MB",
            "maintenance_work_mem": "32MB",
            "work_mem": "2MB",
            "wal_buffers": "4MB",
        }

    def test_keys_are_fixed_and_ordered(self):
        for db_mem in (100, 700, 1500, 3000, 9000):
            settings = synthesize(db_mem).as_dict()
            assert list(settings)[:5] == list(MEMORY_KEYS)
            assert list(settings)[5:] == [key for key, _ in FIXED_HINTS]

    def test_fixed_hints_always_present(self):
        hints = synthesize(640).hint_settings()
        assert hints == {
            "random_page_cost": "1.1",
            "effective_io_concurrency": "200",
            "checkpoint_completion_target": "0.9",
        }

    def test_monotonic_across_bands(self):
        representatives = [256, 768, 1536, 3072, 8192]
        results = [synthesize(mem) for mem in representatives]
        for smaller, larger in zip(results, results[1:]):
            for key in MEMORY_KEYS:
                assert memory_value_mb(getattr(smaller, key)) <= memory_value_mb(
                    getattr(larger, key)
                ), key

    def test_shared_buffers_roughly_quarter_of_band(self):
        for bound, settings in TUNING_BANDS:
            if bound is None:
                continue
            shared = memory_value_mb(settings["shared_buffers"])
            cache = memory_value_mb(settings["effective_cache_size"])
            assert shared <= bound * 0.25
            assert cache <= bound * 0.75

    def test_deterministic(self):
        assert synthesize(640) == synthesize(640)


class TestMemoryValue:
    @pytest.mark.parametrize(
        "value, expected",
        [("96MB", 96), ("1GB", 1024), ("3GB", 3072), ("2048kB", 2), ("512", 512)],
    )
    def test_units(self, value, expected):
        assert memory_value_mb(value) == expected

    def test_rejects_non_memory_value(self):
        with pytest.raises(ValueError):
            memory_value_mb("1.1")
