import os
import tempfile
import unittest

import numpy as np

from opdet import MissingInputError, RepresentationMismatchError
from opdet.common import BUCKETED_PHOTON_WAVELENGTH
from opdet.plugins import (
    BucketedPhotonRecord,
    BucketedPhotons,
    ItemizedPhotons,
    PhotonInputProvider,
    csv_photon_loader,
    iterate_channels,
)
from _utils import (
    build_photons,
    build_random_bucket_table,
    build_random_photon_table,
)


class TestIterateChannels(unittest.TestCase):
    def test_itemized(self):
        photons = ItemizedPhotons(
            {3: build_photons([200.0, 300.0], times=[5, 1]), 1: build_photons([400.0])}
        )
        channels = list(iterate_channels(photons, bucket_width=2))

        self.assertEqual([c[0] for c in channels], [3, 1])
        np.testing.assert_allclose(channels[0][1], [200.0, 300.0])
        np.testing.assert_array_equal(channels[0][2], [5, 1])

    def test_bucketed(self):
        photons = BucketedPhotons(
            [BucketedPhotonRecord(4, {7: 2, 1: 1}), BucketedPhotonRecord(0, {})]
        )
        channels = list(iterate_channels(photons, bucket_width=3))

        self.assertEqual([c[0] for c in channels], [4, 0])
        np.testing.assert_array_equal(channels[0][1], BUCKETED_PHOTON_WAVELENGTH)
        np.testing.assert_array_equal(channels[0][2], [3, 21, 21])
        self.assertEqual(len(channels[1][1]), 0)

    def test_bucketed_same_channel_merged(self):
        photons = BucketedPhotons(
            [
                BucketedPhotonRecord(2, {5: 1}),
                BucketedPhotonRecord(0, {1: 1}),
                BucketedPhotonRecord(2, {5: 2, 0: 1}),
            ]
        )
        channels = list(iterate_channels(photons, bucket_width=2))

        self.assertEqual([c[0] for c in channels], [2, 0])
        np.testing.assert_array_equal(channels[0][2], [0, 10, 10, 10])
        np.testing.assert_array_equal(channels[1][2], [2])

    def test_unknown_representation(self):
        with self.assertRaises(TypeError):
            list(iterate_channels({0: []}, bucket_width=2))


class TestPhotonInputProvider(unittest.TestCase):
    def test_needs_exactly_one_representation(self):
        with self.assertRaises(RepresentationMismatchError):
            PhotonInputProvider()
        with self.assertRaises(RepresentationMismatchError):
            PhotonInputProvider(itemized={}, bucketed={})

    def test_dense_event_ids(self):
        provider = PhotonInputProvider(bucketed={2: {0: {1: 1}}}, event_ids=range(4))
        self.assertTrue(provider.compact)
        self.assertEqual(provider.event_ids, [0, 1, 2, 3])
        self.assertIsInstance(provider.get(2), BucketedPhotons)

    def test_missing_event(self):
        provider = PhotonInputProvider(itemized={0: {}}, event_ids=[0, 1])
        self.assertIsInstance(provider.get(0), ItemizedPhotons)
        with self.assertRaises(MissingInputError) as context:
            provider.get(1)
        self.assertEqual(context.exception.event_id, 1)
        self.assertIn("largeant", str(context.exception))


class TestCsvPhotonLoader(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.input_file = os.path.join(self.temp_dir.name, "photons.csv")

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_itemized(self):
        df = build_random_photon_table(200)
        df.to_csv(self.input_file, index=False)

        provider = csv_photon_loader(self.input_file).load()

        self.assertFalse(provider.compact)
        self.assertEqual(provider.event_ids, sorted(df["eventid"].unique()))

        n_photons = 0
        for event_id in provider.event_ids:
            for channel, wavelengths, times in iterate_channels(provider.get(event_id), 2):
                n_photons += len(wavelengths)
                self.assertTrue(np.all((wavelengths > 99) & (wavelengths < 601)))
        self.assertEqual(n_photons, len(df))

    def test_itemized_with_wavelength_column(self):
        df = build_random_photon_table(10)
        df["wavelength"] = 321.0
        df.to_csv(self.input_file, index=False)

        provider = csv_photon_loader(self.input_file).load()
        for event_id in provider.event_ids:
            for _, wavelengths, _ in iterate_channels(provider.get(event_id), 2):
                np.testing.assert_array_equal(wavelengths, 321.0)

    def test_bucketed(self):
        df = build_random_bucket_table(100)
        df.to_csv(self.input_file, index=False)

        provider = csv_photon_loader(self.input_file, compact=True, event_ids=range(8)).load()

        self.assertTrue(provider.compact)
        self.assertEqual(provider.event_ids, list(range(8)))

        n_photons = 0
        for event_id in provider.event_ids:
            if event_id not in provider:
                continue
            for _, _, times in iterate_channels(provider.get(event_id), 2):
                n_photons += len(times)
        self.assertEqual(n_photons, df["count"].sum())

    def test_missing_columns(self):
        df = build_random_photon_table(10).drop(columns="energy")
        df.to_csv(self.input_file, index=False)

        with self.assertRaises(ValueError):
            csv_photon_loader(self.input_file).load()


if __name__ == "__main__":
    unittest.main()
