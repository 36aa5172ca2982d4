import unittest

import numpy as np

from src.core.exceptions import PostProcessError
from src.pipeline.alpha import (
    AlphaNormalizer,
    edge_distance,
    edge_mask,
    enclosed_holes,
)


def opaque_canvas(h, w, alpha=255, rgb=(10, 20, 30)):
    rgba = np.zeros((h, w, 4), dtype=np.uint8)
    rgba[:, :, :3] = rgb
    rgba[:, :, 3] = alpha
    return rgba


class TestHoleFill(unittest.TestCase):
    def setUp(self):
        self.normalizer = AlphaNormalizer()

    def test_enclosed_hole_becomes_opaque_white(self):
        rgba = np.zeros((30, 40, 4), dtype=np.uint8)
        rgba[5:25, 5:35] = (200, 30, 30, 200)
        rgba[12:16, 18:22] = 0

        out, filled = self.normalizer.fill_enclosed_holes(rgba)

        self.assertEqual(filled, 16)
        self.assertTrue((out[12:16, 18:22] == (255, 255, 255, 255)).all())
        # Margin touching the border stays transparent
        self.assertTrue((out[0:5, :, 3] == 0).all())
        self.assertTrue((out[:, 0:5, 3] == 0).all())

    def test_channel_to_border_is_not_a_hole(self):
        rgba = np.zeros((30, 40, 4), dtype=np.uint8)
        rgba[5:25, 5:35] = (200, 30, 30, 255)
        rgba[0:15, 18:22] = 0

        out, filled = self.normalizer.fill_enclosed_holes(rgba)

        self.assertEqual(filled, 0)
        self.assertTrue((out[0:15, 18:22, 3] == 0).all())

    def test_diagonal_contact_does_not_connect(self):
        rgba = opaque_canvas(7, 7)
        rgba[0, 0] = 0
        rgba[1, 1] = 0

        holes = enclosed_holes(rgba[:, :, 3])

        self.assertTrue(holes[1, 1])
        self.assertFalse(holes[0, 0])

    def test_no_transparency_means_no_holes(self):
        holes = enclosed_holes(opaque_canvas(5, 5)[:, :, 3])
        self.assertFalse(holes.any())

    def test_custom_fill_colour(self):
        normalizer = AlphaNormalizer(hole_fill_rgba=(0, 0, 0, 255))
        rgba = opaque_canvas(5, 5)
        rgba[2, 2] = 0

        out, _ = normalizer.fill_enclosed_holes(rgba)

        self.assertEqual(tuple(out[2, 2]), (0, 0, 0, 255))

    def test_fill_can_be_disabled(self):
        normalizer = AlphaNormalizer(fill_holes=False)
        rgba = opaque_canvas(9, 9, alpha=255)
        rgba[4, 4] = 0

        out = normalizer.normalize(rgba)

        self.assertEqual(out[4, 4, 3], 0)


class TestEdgeDetection(unittest.TestCase):
    def test_canvas_border_counts_as_transparent(self):
        edges = edge_mask(opaque_canvas(5, 5)[:, :, 3])

        expected = np.ones((5, 5), dtype=bool)
        expected[1:4, 1:4] = False
        np.testing.assert_array_equal(edges, expected)

    def test_diagonal_neighbour_of_transparency_is_edge(self):
        alpha = opaque_canvas(7, 7)[:, :, 3]
        alpha[3, 3] = 0

        edges = edge_mask(alpha)

        self.assertTrue(edges[2, 2])
        self.assertTrue(edges[4, 4])
        self.assertFalse(edges[3, 3])
        self.assertFalse(edges[1, 3])

    def test_distance_grows_inward(self):
        dist = edge_distance(opaque_canvas(7, 7)[:, :, 3])

        self.assertEqual(dist[0, 0], 0)
        self.assertEqual(dist[1, 1], 1)
        self.assertEqual(dist[2, 3], 2)
        self.assertEqual(dist[3, 3], 3)

    def test_distance_is_minus_one_on_transparent(self):
        alpha = opaque_canvas(5, 5)[:, :, 3]
        alpha[2, 2] = 0

        dist = edge_distance(alpha)

        self.assertEqual(dist[2, 2], -1)

    def test_limit_marks_unreached_pixels(self):
        dist = edge_distance(opaque_canvas(11, 11)[:, :, 3], limit=2)

        self.assertEqual(dist[2, 2], 2)
        self.assertEqual(dist[5, 5], 3)


class TestNormalize(unittest.TestCase):
    def setUp(self):
        self.normalizer = AlphaNormalizer(keep_edge_px=2)

    def test_interior_forced_opaque_edge_band_kept(self):
        rgba = np.zeros((30, 30, 4), dtype=np.uint8)
        rgba[5:25, 5:25] = (90, 90, 90, 100)

        out = self.normalizer.normalize(rgba)
        alpha = out[:, :, 3]

        # Rings at distance 0, 1, 2 keep their anti-aliasing
        self.assertEqual(alpha[5, 10], 100)
        self.assertEqual(alpha[6, 10], 100)
        self.assertEqual(alpha[7, 10], 100)
        # Everything deeper is fully opaque
        self.assertEqual(alpha[8, 10], 255)
        self.assertTrue((alpha[8:22, 8:22] == 255).all())
        self.assertTrue((alpha[0:5, :] == 0).all())
        # Colour channels untouched
        self.assertTrue((out[5:25, 5:25, :3] == 90).all())

    def test_full_canvas_sticker(self):
        out = self.normalizer.normalize(opaque_canvas(10, 10, alpha=50))
        alpha = out[:, :, 3]

        self.assertEqual(alpha[0, 0], 50)
        self.assertEqual(alpha[2, 2], 50)
        self.assertEqual(alpha[3, 3], 255)
        self.assertEqual(alpha[5, 5], 255)

    def test_zero_keep_edge(self):
        out = AlphaNormalizer(keep_edge_px=0).normalize(opaque_canvas(6, 6, alpha=40))
        alpha = out[:, :, 3]

        self.assertEqual(alpha[0, 3], 40)
        self.assertTrue((alpha[1:5, 1:5] == 255).all())

    def test_filled_hole_no_longer_creates_an_edge(self):
        rgba = opaque_canvas(21, 21, alpha=120)
        rgba[10, 10] = 0

        out = self.normalizer.normalize(rgba)

        self.assertEqual(tuple(out[10, 10]), (255, 255, 255, 255))
        self.assertEqual(out[9, 10, 3], 255)
        self.assertEqual(out[9, 9, 3], 255)

    def test_input_not_mutated_and_deterministic(self):
        rgba = np.zeros((20, 20, 4), dtype=np.uint8)
        rgba[3:17, 3:17] = (1, 2, 3, 77)
        rgba[9, 9] = 0
        before = rgba.copy()

        first = self.normalizer.normalize(rgba)
        second = self.normalizer.normalize(rgba)

        np.testing.assert_array_equal(rgba, before)
        np.testing.assert_array_equal(first, second)

    def test_idempotent(self):
        rgba = np.zeros((20, 20, 4), dtype=np.uint8)
        rgba[3:17, 3:17] = (1, 2, 3, 77)
        rgba[9, 9] = 0

        once = self.normalizer.normalize(rgba)
        twice = self.normalizer.normalize(once)

        np.testing.assert_array_equal(once, twice)

    def test_fully_transparent_image_unchanged(self):
        rgba = np.zeros((8, 8, 4), dtype=np.uint8)
        np.testing.assert_array_equal(self.normalizer.normalize(rgba), rgba)

    def test_rejects_malformed_rasters(self):
        with self.assertRaises(PostProcessError):
            self.normalizer.normalize(np.zeros((4, 4, 3), dtype=np.uint8))
        with self.assertRaises(PostProcessError):
            self.normalizer.normalize(np.zeros((4, 4, 4), dtype=np.float32))
        with self.assertRaises(PostProcessError):
            self.normalizer.normalize(np.zeros((0, 4, 4), dtype=np.uint8))

    def test_negative_keep_edge_rejected(self):
        with self.assertRaises(ValueError):
            AlphaNormalizer(keep_edge_px=-1)


if __name__ == "__main__":
    unittest.main()
