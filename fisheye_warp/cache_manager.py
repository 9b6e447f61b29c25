"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

ProjectionMaps = Tuple[np.ndarray, np.ndarray, np.ndarray]


def _maps_nbytes(maps: ProjectionMaps) -> int:
  return sum(m.nbytes for m in maps)


class CacheManager:
  """
  Thread-safe LRU cache of projection maps.

  A projection depends only on the output camera, the fisheye calibration,
  the rotation and the source raster size, so every frame of a batch with
  the same resolution reuses one (map_x, map_y, valid) triple. Cached arrays
  are stored read-only.
  """

  def __init__(self, max_memory_mb: Optional[float] = None):
    """
    Parameters:
    - max_memory_mb: Optional maximum memory usage in MB. If None, no limit is enforced.
    """
    self._cache: "OrderedDict[str, Tuple[ProjectionMaps, float]]" = OrderedDict()
    self._max_memory_mb = max_memory_mb
    self._lock = threading.RLock()
    self._access_count = 0
    self._hit_count = 0
    self._eviction_count = 0

  def get(self, cache_key: str) -> Optional[ProjectionMaps]:
    """
    Retrieve cached maps and mark them most recently used.

    Returns:
    - (map_x, map_y, valid) if found, None otherwise
    """
    with self._lock:
      self._access_count += 1
      entry = self._cache.get(cache_key)
      if entry is None:
        return None

      maps, _ = entry
      self._cache[cache_key] = (maps, time.time())
      self._cache.move_to_end(cache_key)
      self._hit_count += 1
      return maps

  def put(self, cache_key: str, map_x: np.ndarray, map_y: np.ndarray, valid: np.ndarray) -> bool:
    """
    Store projection maps, evicting least recently used entries when a
    memory limit is set.

    Returns:
    - True if the maps were cached
    """
    maps = tuple(np.array(m, copy=True) for m in (map_x, map_y, valid))
    for m in maps:
      m.setflags(write=False)
    new_memory_mb = _maps_nbytes(maps) / (1024 * 1024)

    with self._lock:
      if cache_key in self._cache:
        self._cache[cache_key] = (maps, time.time())
        self._cache.move_to_end(cache_key)
        return True

      if self._max_memory_mb is not None:
        current_memory = self._calculate_total_memory_mb()

        while current_memory + new_memory_mb > self._max_memory_mb and len(self._cache) > 0:
          lru_key, (lru_maps, _) = self._cache.popitem(last=False)
          freed_memory = _maps_nbytes(lru_maps) / (1024 * 1024)
          current_memory -= freed_memory
          self._eviction_count += 1
          logger.debug("LRU evicted: %s (freed %.1f MB)", lru_key, freed_memory)

        if current_memory + new_memory_mb > self._max_memory_mb:
          logger.warning("Cannot cache projection maps %s: %.1f MB exceeds the %.1f MB limit",
                         cache_key, new_memory_mb, self._max_memory_mb)
          return False

      self._cache[cache_key] = (maps, time.time())
      return True

  def remove(self, cache_key: str) -> bool:
    with self._lock:
      if cache_key in self._cache:
        del self._cache[cache_key]
        return True
      return False

  def clear(self) -> None:
    with self._lock:
      self._cache.clear()

  def contains(self, cache_key: str) -> bool:
    with self._lock:
      return cache_key in self._cache

  def get_info(self) -> Dict[str, Any]:
    """
    Cache statistics: entry counts per output camera type, memory and LRU counters.
    """
    with self._lock:
      total_memory_bytes = 0
      counts = {'pinhole': 0, 'spherical': 0}
      oldest_timestamp = float('inf')
      newest_timestamp = 0.0
      for key, (maps, timestamp) in self._cache.items():
        total_memory_bytes += _maps_nbytes(maps)
        oldest_timestamp = min(oldest_timestamp, timestamp)
        newest_timestamp = max(newest_timestamp, timestamp)
        kind = key.split('_', 1)[0]
        if kind in counts:
          counts[kind] += 1

      cache_age_span = newest_timestamp - oldest_timestamp if len(self._cache) > 1 else 0.0

      return {
        'total_cached_projections': len(self._cache),
        'pinhole_projections': counts['pinhole'],
        'spherical_projections': counts['spherical'],
        'memory_usage_bytes': total_memory_bytes,
        'memory_usage_mb': total_memory_bytes / (1024 * 1024),
        'max_memory_mb': self._max_memory_mb,
        'memory_limit_enabled': self._max_memory_mb is not None,
        'total_accesses': self._access_count,
        'total_hits': self._hit_count,
        'total_evictions': self._eviction_count,
        'cache_age_span_seconds': cache_age_span
      }

  def log_status(self) -> None:
    info = self.get_info()
    logger.info("Cache status: %d projections (%d pinhole, %d spherical), %.1f MB",
                info['total_cached_projections'], info['pinhole_projections'],
                info['spherical_projections'], info['memory_usage_mb'])

  def get_cache_keys(self, prefix: Optional[str] = None) -> list:
    """
    Cache keys from least to most recently used, optionally filtered by prefix
    (e.g. 'pinhole_' or 'spherical_').
    """
    with self._lock:
      if prefix is None:
        return list(self._cache.keys())
      return [key for key in self._cache.keys() if key.startswith(prefix)]

  def get_cache_ages(self) -> Dict[str, float]:
    """
    Seconds since each entry was stored or last read.
    """
    with self._lock:
      current_time = time.time()
      return {key: current_time - timestamp
              for key, (_, timestamp) in self._cache.items()}

  def _calculate_total_memory_mb(self) -> float:
    return sum(_maps_nbytes(maps) for maps, _ in self._cache.values()) / (1024 * 1024)
