from __future__ import annotations

import threading

import numpy as np
import pytest

from fisheye_warp import cache_manager
from fisheye_warp.cache_manager import CacheManager


def _maps(size: int = 100):
  return (np.zeros((size, size)), np.ones((size, size)), np.ones((size, size), dtype=bool))


def test_get_put_remove_clear() -> None:
  cache = CacheManager()
  assert cache.get('pinhole_a') is None
  assert cache.put('pinhole_a', *_maps(4))
  assert cache.contains('pinhole_a')

  map_x, map_y, valid = cache.get('pinhole_a')
  assert map_x.shape == (4, 4) and valid.dtype == bool

  assert cache.remove('pinhole_a')
  assert not cache.remove('pinhole_a')
  cache.put('spherical_b', *_maps(4))
  cache.clear()
  assert cache.get_cache_keys() == []


def test_cached_maps_are_copies() -> None:
  cache = CacheManager()
  map_x, map_y, valid = _maps(4)
  cache.put('pinhole_a', map_x, map_y, valid)
  map_x[0, 0] = 42.0
  assert cache.get('pinhole_a')[0][0, 0] == 0.0


def test_lru_eviction_under_memory_limit() -> None:
  # One entry is 100*100*(8 + 8 + 1) bytes, about 0.16 MB
  cache = CacheManager(max_memory_mb=0.2)
  cache.put('pinhole_a', *_maps())
  cache.put('pinhole_b', *_maps())
  assert cache.get_cache_keys() == ['pinhole_b']
  assert cache.get_info()['total_evictions'] == 1


def test_lru_order_follows_access() -> None:
  cache = CacheManager(max_memory_mb=0.4)
  cache.put('pinhole_a', *_maps())
  cache.put('spherical_b', *_maps())
  cache.get('pinhole_a')
  cache.put('pinhole_c', *_maps())
  assert cache.get_cache_keys() == ['pinhole_a', 'pinhole_c']


def test_entry_larger_than_limit_is_not_cached() -> None:
  cache = CacheManager(max_memory_mb=0.1)
  assert not cache.put('pinhole_a', *_maps())
  assert cache.get_info()['total_cached_projections'] == 0


def test_info_counts_camera_types() -> None:
  cache = CacheManager()
  cache.put('pinhole_a', *_maps(4))
  cache.put('pinhole_b', *_maps(4))
  cache.put('spherical_c', *_maps(4))
  info = cache.get_info()
  assert info['pinhole_projections'] == 2
  assert info['spherical_projections'] == 1
  assert info['memory_usage_bytes'] == 3 * (16 * 8 * 2 + 16)
  assert not info['memory_limit_enabled']
  assert cache.get_cache_keys(prefix='spherical_') == ['spherical_c']


def test_concurrent_access() -> None:
  cache = CacheManager()

  def worker(index: int) -> None:
    for i in range(50):
      key = f"pinhole_{(index + i) % 5}"
      if cache.get(key) is None:
        cache.put(key, *_maps(4))

  threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
  for t in threads:
    t.start()
  for t in threads:
    t.join()

  assert sorted(cache.get_cache_keys()) == [f"pinhole_{i}" for i in range(5)]
  assert cache.get_info()['total_accesses'] == 400


def test_entry_ages(monkeypatch: pytest.MonkeyPatch) -> None:
  clock = [100.0]
  monkeypatch.setattr(cache_manager.time, "time", lambda: clock[0])

  cache = CacheManager()
  cache.put('pinhole_a', *_maps(4))
  assert cache.get_info()['cache_age_span_seconds'] == 0.0

  clock[0] = 103.0
  cache.put('spherical_b', *_maps(4))
  clock[0] = 110.0
  assert cache.get_info()['cache_age_span_seconds'] == 3.0
  assert cache.get_cache_ages() == {'pinhole_a': 10.0, 'spherical_b': 7.0}

  # Reading refreshes the entry
  cache.get('pinhole_a')
  assert cache.get_cache_ages()['pinhole_a'] == 0.0
  assert cache.get_info()['cache_age_span_seconds'] == 7.0
