import numpy as np
import pytest

from preprocessing.normalize import normalize_intensity, round_half_up, to_grayscale
from tests.helpers import rgba_from_luma


def test_grayscale_channels_equal_and_alpha_kept(random_rgba):
    gray = to_grayscale(random_rgba)

    assert gray.shape == random_rgba.shape
    assert np.array_equal(gray[..., 0], gray[..., 1])
    assert np.array_equal(gray[..., 1], gray[..., 2])
    assert np.array_equal(gray[..., 3], random_rgba[..., 3])


def test_grayscale_uses_bt709_weights():
    pixels = np.array(
        [[[255, 0, 0, 10], [0, 255, 0, 20], [0, 0, 255, 30], [255, 255, 255, 40]]],
        dtype=np.uint8,
    )
    gray = to_grayscale(pixels)

    assert gray[0, :, 0].tolist() == [54, 182, 18, 255]
    assert gray[0, :, 3].tolist() == [10, 20, 30, 40]


def test_grayscale_does_not_mutate_input(random_rgba):
    before = random_rgba.copy()
    to_grayscale(random_rgba)
    assert np.array_equal(before, random_rgba)


def test_grayscale_rejects_rgb():
    with pytest.raises(ValueError):
        to_grayscale(np.zeros((4, 4, 3), dtype=np.uint8))


def test_normalize_stretches_to_full_range(random_rgba):
    norm = normalize_intensity(to_grayscale(random_rgba))
    assert int(norm[..., 0].min()) == 0
    assert int(norm[..., 0].max()) == 255


def test_normalize_rounds_half_up():
    gray = rgba_from_luma(np.array([[10, 11, 12]]))
    norm = normalize_intensity(gray)
    assert norm[0, :, 0].tolist() == [0, 128, 255]


def test_normalize_constant_image_maps_to_zero():
    gray = rgba_from_luma(np.full((8, 8), 128), alpha=77)
    norm = normalize_intensity(gray)

    assert not norm[..., :3].any()
    assert (norm[..., 3] == 77).all()


def test_round_half_up_differs_from_bankers_rounding():
    assert round_half_up(np.array([0.5, 1.5, 2.5, 2.49])).tolist() == [1.0, 2.0, 3.0, 2.0]
