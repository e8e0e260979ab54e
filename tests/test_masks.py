"""
Tests for prototype mask reconstruction and resampling.
"""

import cv2
import pytest
import numpy as np

from decoding.masks import MaskReconstructor
from models.detection import BoundingBox, Mask2D
from models.errors import ShapeMismatch
from models.tensor import TensorView


@pytest.fixture
def reconstructor():
    return MaskReconstructor()


class TestReconstruct:
    def test_zero_prototypes(self, reconstructor):
        prob = reconstructor.reconstruct(np.ones(32), np.zeros((32, 20, 10)))
        assert prob.shape == (20, 10)
        assert np.allclose(prob, 0.5)

    def test_linear_combination(self, reconstructor):
        protos = np.zeros((2, 2, 2), dtype=np.float32)
        protos[0] = 1.0
        protos[1] = [[0.0, 2.0], [0.0, -2.0]]
        prob = reconstructor.reconstruct([1.0, 1.0], protos)
        expected = 1.0 / (1.0 + np.exp(-np.array([[1.0, 3.0], [1.0, -1.0]])))
        assert np.allclose(prob, expected, atol=1e-6)

    def test_batch_matches_single(self, reconstructor):
        rng = np.random.default_rng(3)
        protos = rng.normal(size=(4, 6, 6)).astype(np.float32)
        coeffs = rng.normal(size=(3, 4)).astype(np.float32)
        batch = reconstructor.reconstruct_batch(coeffs, TensorView.from_array(protos))
        for i in range(3):
            assert np.allclose(batch[i], reconstructor.reconstruct(coeffs[i], protos), atol=1e-6)

    def test_coefficient_count_mismatch(self, reconstructor):
        with pytest.raises(ShapeMismatch):
            reconstructor.reconstruct(np.ones(16), np.zeros((32, 4, 4)))

    def test_prototypes_must_be_3d(self, reconstructor):
        with pytest.raises(ShapeMismatch):
            reconstructor.reconstruct(np.ones(4), np.zeros((4, 16)))


class TestToMask:
    def test_dimensions_match_grid(self, reconstructor):
        prob = reconstructor.reconstruct(np.zeros(32), np.zeros((32, 160, 160)))
        mask = reconstructor.to_mask(prob)
        assert (mask.width, mask.height) == (160, 160)
        assert mask.alpha.dtype == np.uint8
        assert np.all(mask.alpha == 128)

    def test_alpha_in_range(self, reconstructor):
        rng = np.random.default_rng(5)
        prob = reconstructor.reconstruct(rng.normal(size=8) * 50, rng.normal(size=(8, 12, 12)))
        alpha = reconstructor.to_mask(prob).alpha
        assert alpha.min() >= 0 and alpha.max() <= 255


class TestResample:
    def test_box_inside_frame(self, reconstructor):
        prob = np.full((16, 16), 0.5, dtype=np.float32)
        mask = reconstructor.resample(prob, BoundingBox(10, 20, 30, 40), 100, 100)
        assert (mask.width, mask.height) == (30, 40)
        assert np.all(np.abs(mask.alpha.astype(int) - 128) <= 1)

    def test_box_clipped_to_frame(self, reconstructor):
        prob = np.ones((16, 16), dtype=np.float32)
        mask = reconstructor.resample(prob, BoundingBox(80, 90, 50, 50), 100, 100)
        assert (mask.width, mask.height) == (20, 10)

    def test_off_frame_box_is_empty(self, reconstructor):
        prob = np.ones((16, 16), dtype=np.float32)
        assert reconstructor.resample(prob, BoundingBox(150, 150, 10, 10), 100, 100).width == 0
        assert reconstructor.resample(prob, BoundingBox(10, 10, 0, 10), 100, 100).width == 0

    def test_samples_the_box_region(self, reconstructor):
        prob = np.zeros((10, 10), dtype=np.float32)
        prob[:, 5:] = 1.0
        left = reconstructor.resample(prob, BoundingBox(0, 0, 40, 100), 100, 100)
        right = reconstructor.resample(prob, BoundingBox(60, 0, 40, 100), 100, 100)
        assert np.all(left.alpha == 0)
        assert np.all(right.alpha == 255)

    def test_matches_full_frame_resize(self, reconstructor):
        # Smooth gradient so bilinear weights are the only difference
        ys, xs = np.mgrid[0:16, 0:16].astype(np.float32)
        prob = (xs + ys) / 30.0
        full = cv2.resize(prob, (120, 80), interpolation=cv2.INTER_LINEAR)
        box = BoundingBox(17.3, 9.6, 50.2, 40.1)
        mask = reconstructor.resample(prob, box, 120, 80)
        expected = Mask2D.from_probabilities(full[9:50, 17:68])
        assert (mask.width, mask.height) == (51, 41)
        assert np.max(np.abs(mask.alpha.astype(int) - expected.alpha.astype(int))) <= 2

    def test_many_instances_in_one_batch(self, reconstructor):
        rng = np.random.default_rng(11)
        count = 300
        probs = rng.random((count, 160, 160)).astype(np.float32)
        boxes = [BoundingBox(float(i % 40) * 40, float(i // 40) * 100, 32, 24) for i in range(count)]
        masks = reconstructor.resample_batch(probs, boxes, 1920, 1080)
        assert len(masks) == count
        assert all((m.width, m.height) == (32, 24) for m in masks)
