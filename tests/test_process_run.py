import json
import os
import shutil
import tempfile
import unittest

import numpy as np
import timeout_decorator

import opdet
from opdet import ConfigurationError, RepresentationMismatchError
from opdet.plugins import PhotonInputProvider, VoxelLightSource
from _utils import build_random_bucket_table, build_random_photon_table, build_random_bucketed

TIMEOUT = 120


class TestProcessRun(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.temp_dir = tempfile.TemporaryDirectory()
        cls.input_file = os.path.join(cls.temp_dir.name, "photons.csv")
        cls.run_number = "TestRun_00000"

    @classmethod
    def tearDownClass(cls):
        cls.temp_dir.cleanup()

    def tearDown(self):
        shutil.rmtree(self.temp_dir.name)
        os.makedirs(self.temp_dir.name)

    @timeout_decorator.timeout(TIMEOUT, exception_message="Itemized run timed out")
    def test_itemized_run(self):
        df = build_random_photon_table(500, n_events=5)
        df = df[df["eventid"] != 2]
        df.to_csv(self.input_file, index=False)

        counter = opdet.context.photon_counter_context(
            run_id=self.run_number,
            input_file=self.input_file,
            quantum_efficiency=0.25,
            wavelength_cut_low=150,
            wavelength_cut_high=500,
            verbosity=1,
        )
        provider = opdet.context.load_photons(counter.config, event_ids=range(5))

        self.assertIsNone(opdet.context.process_run(counter, provider))

        events = counter.output("opdet_events")
        np.testing.assert_array_equal(events["event_id"], np.arange(5))
        self.assertEqual(events["count_all"][2], 0)
        self.assertEqual(events["count_all"].sum(), len(df))
        self.assertTrue(np.all(events["count_detected"] <= events["count_all"]))

        detected = counter.output("detected_photons")
        self.assertTrue(np.all((detected["wavelength"] > 150) & (detected["wavelength"] < 500)))

    @timeout_decorator.timeout(TIMEOUT, exception_message="Bucketed run timed out")
    def test_bucketed_run(self):
        df = build_random_bucket_table(300, n_events=4)
        df.to_csv(self.input_file, index=False)

        counter = opdet.context.photon_counter_context(
            run_id=self.run_number,
            input_file=self.input_file,
            compact_photons=True,
            quantum_efficiency=0.5,
            make_all_photons=False,
        )
        provider = opdet.context.load_photons(counter.config)
        opdet.context.process_run(counter, provider)

        self.assertEqual(counter.output("opdet_events")["count_all"].sum(), df["count"].sum())
        np.testing.assert_array_equal(counter.output("detected_photons")["wavelength"], 128)

    @timeout_decorator.timeout(TIMEOUT, exception_message="Library building run timed out")
    def test_library_run(self):
        library_file = os.path.join(self.temp_dir.name, "library.npy")
        events = build_random_bucketed(6, seed=3)
        provider = PhotonInputProvider(bucketed=events)

        counter = opdet.context.photon_counter_context(
            compact_photons=True,
            build_library=True,
            library_file=library_file,
            quantum_efficiency=0.0,
            light_source=VoxelLightSource(10000, voxels=range(6)),
        )
        entries = opdet.context.process_run(counter, provider)

        self.assertTrue(os.path.exists(library_file))
        self.assertTrue(np.all((entries["efficiency"] >= 0) & (entries["efficiency"] <= 1)))
        self.assertEqual(len(entries), sum(len(channels) for channels in events.values()))

        library = opdet.plugins.PhotonLibrary.from_file(library_file)
        for entry in entries:
            self.assertAlmostEqual(
                library.get_visibility(entry["voxel"], entry["channel"]),
                float(entry["efficiency"]),
            )

    def test_config_from_file(self):
        config_file = os.path.join(self.temp_dir.name, "config.json")
        with open(config_file, "w") as file:
            json.dump({"quantum_efficiency": 0.1, "input_module": "pdfastsim"}, file)

        counter = opdet.context.photon_counter_context(
            simulation_config_file=config_file, verbosity=2
        )
        self.assertEqual(counter.quantum_efficiency, 0.1)
        self.assertEqual(counter.input_module, "pdfastsim")
        self.assertEqual(counter.verbosity, 2)

    def test_invalid_config_stops_before_processing(self):
        with self.assertRaises(ConfigurationError):
            opdet.context.photon_counter_context(quantum_efficiency=1.5)

    def test_no_input_file(self):
        counter = opdet.context.photon_counter_context()
        with self.assertRaises(ConfigurationError):
            opdet.context.load_photons(counter.config)

    def test_missing_event_logged_once(self):
        provider = PhotonInputProvider(bucketed={0: {1: {0: 2}}}, event_ids=[0, 1])
        counter = opdet.context.photon_counter_context(compact_photons=True, verbosity=1)

        with self.assertLogs(level="INFO") as logs:
            opdet.context.process_run(counter, provider)

        missing = [line for line in logs.output if "No photon collection" in line]
        self.assertEqual(len(missing), 1)
        self.assertIn("event 1", missing[0])
        np.testing.assert_array_equal(counter.output("opdet_events")["count_all"], [2, 0])

    def test_representation_mismatch(self):
        counter = opdet.context.photon_counter_context(compact_photons=False)
        provider = PhotonInputProvider(bucketed={0: {0: {0: 1}}})
        with self.assertRaises(RepresentationMismatchError):
            opdet.context.process_run(counter, provider)


if __name__ == "__main__":
    unittest.main()
