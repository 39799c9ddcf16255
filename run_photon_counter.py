import opdet

counter = opdet.context.photon_counter_context(
    run_id="00000",
    input_file="./photons.csv",
    quantum_efficiency=0.2,
    wavelength_cut_low=100,
    wavelength_cut_high=200,
    verbosity=2,
)

photons = opdet.context.load_photons(counter.config)
opdet.context.process_run(counter, photons)

# Per event and per channel counts
opdet_events = counter.sinks["opdet_events"].to_dataframe()
opdet_channels = counter.sinks["opdet_channels"].to_dataframe()

opdet_events.to_csv("./opdet_events.csv", index=False)
opdet_channels.to_csv("./opdet_channels.csv", index=False)
