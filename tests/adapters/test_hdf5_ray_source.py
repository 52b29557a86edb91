"""
Tests for HDF5RaySource.
"""

import h5py
import numpy as np
import pytest

from densitypipe.adapters.hdf5_ray_source import HDF5RaySource, write_rays_hdf5
from densitypipe.exceptions import StreamError


@pytest.fixture
def ray_arrays(rng):
    starts = np.zeros((7, 3))
    ends = rng.uniform(-2.0, 5.0, size=(7, 3))
    is_hit = np.array([True, False, True, True, False, True, False])
    return starts, ends, is_hit


@pytest.fixture
def ray_file(tmp_path, ray_arrays):
    path = tmp_path / "cloud.h5"
    write_rays_hdf5(path, *ray_arrays)
    return path


class TestHDF5RaySource:
    """Test streaming rays from HDF5 files."""

    def test_streams_batches_in_order(self, ray_file, ray_arrays):
        starts, ends, is_hit = ray_arrays
        batches = list(HDF5RaySource(ray_file, batch_size=3))

        assert [len(b) for b in batches] == [3, 3, 1]
        np.testing.assert_allclose(np.concatenate([b.starts for b in batches]), starts)
        np.testing.assert_allclose(np.concatenate([b.ends for b in batches]), ends)
        np.testing.assert_array_equal(np.concatenate([b.is_hit for b in batches]), is_hit)

    def test_iterates_more_than_once(self, ray_file):
        source = HDF5RaySource(ray_file, batch_size=4)
        assert sum(len(b) for b in source) == 7
        assert sum(len(b) for b in source) == 7

    def test_alpha_marks_hits(self, tmp_path):
        path = tmp_path / "alpha.h5"
        with h5py.File(path, "w") as h5_file:
            h5_file.create_dataset("starts", data=np.zeros((3, 3)))
            h5_file.create_dataset("ends", data=np.ones((3, 3)))
            h5_file.create_dataset("alpha", data=np.array([255, 0, 12], dtype=np.uint8))

        batch, = list(HDF5RaySource(path))
        np.testing.assert_array_equal(batch.is_hit, [True, False, True])

    def test_missing_file(self, tmp_path):
        with pytest.raises(StreamError, match="does not exist"):
            list(HDF5RaySource(tmp_path / "absent.h5"))

    def test_missing_dataset(self, tmp_path):
        path = tmp_path / "partial.h5"
        with h5py.File(path, "w") as h5_file:
            h5_file.create_dataset("starts", data=np.zeros((3, 3)))
            h5_file.create_dataset("ends", data=np.ones((3, 3)))

        with pytest.raises(StreamError, match="is_hit"):
            list(HDF5RaySource(path))

    def test_mismatched_shapes(self, tmp_path):
        path = tmp_path / "mismatched.h5"
        with h5py.File(path, "w") as h5_file:
            h5_file.create_dataset("starts", data=np.zeros((3, 3)))
            h5_file.create_dataset("ends", data=np.ones((2, 3)))
            h5_file.create_dataset("is_hit", data=np.ones(3, dtype=bool))

        with pytest.raises(StreamError, match="mismatched"):
            list(HDF5RaySource(path))

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "corrupt.h5"
        path.write_bytes(b"not an hdf5 file")

        with pytest.raises(StreamError, match="Failed to read"):
            list(HDF5RaySource(path))

    def test_invalid_batch_size(self, ray_file):
        with pytest.raises(ValueError, match="batch_size"):
            HDF5RaySource(ray_file, batch_size=0)

    def test_bounds_of_hit_ends(self, ray_file, ray_arrays):
        _, ends, is_hit = ray_arrays
        min_bound, max_bound = HDF5RaySource(ray_file, batch_size=2).bounds()

        np.testing.assert_allclose(min_bound, ends[is_hit].min(axis=0))
        np.testing.assert_allclose(max_bound, ends[is_hit].max(axis=0))

    def test_bounds_without_hits(self, tmp_path, ray_arrays):
        starts, ends, _ = ray_arrays
        path = tmp_path / "misses.h5"
        write_rays_hdf5(path, starts, ends, np.zeros(len(ends), dtype=bool))

        min_bound, max_bound = HDF5RaySource(path).bounds()
        np.testing.assert_allclose(min_bound, ends.min(axis=0))
        np.testing.assert_allclose(max_bound, ends.max(axis=0))
