import logging

import opdet

from .config import DetectorConfig
from .errors import ConfigurationError, MissingInputError, RepresentationMismatchError

logging.basicConfig(handlers=[logging.StreamHandler()])
log = logging.getLogger("opdet.context")


def photon_counter_context(
    config=None,
    run_id="00000",
    simulation_config_file=None,
    sinks=None,
    library=None,
    light_source=None,
    **config_overrides,
):
    """Function to create a photon counter for a run.

    The configuration is taken from config, or loaded from
    simulation_config_file, and updated with config_overrides. It is
    validated before anything else happens.
    """

    if config is not None and simulation_config_file is not None:
        raise ValueError("Specify either config or simulation_config_file, not both")

    if simulation_config_file is not None:
        config = DetectorConfig.from_json(simulation_config_file)
    elif config is None:
        config = DetectorConfig()

    if config_overrides:
        config = config.updated(**config_overrides)

    return opdet.plugins.PhotonCounter(
        config=config,
        run_id=run_id,
        sinks=sinks,
        library=library,
        light_source=light_source,
    )


def load_photons(config, event_ids=None):
    """Build the input provider from the input_file of the configuration."""
    if config.input_file is None:
        raise ConfigurationError("No input_file configured!")

    loader = opdet.plugins.csv_photon_loader(
        config.input_file,
        compact=config.compact_photons,
        event_ids=event_ids,
        input_module=config.input_module,
        log=log,
    )
    return loader.load()


def process_run(photon_counter, provider):
    """Count the photons of all events of a provider and store the library
    at the end of the run.

    Returns the visibility library entries of a library building job, None
    otherwise.
    """
    if provider.compact != photon_counter.compact_photons:
        raise RepresentationMismatchError(
            "Input provider and configuration disagree on the compact photon representation!"
        )

    log.debug(f"Processing {len(provider)} events from {provider.input_module}")

    for event_id in provider.event_ids:
        try:
            photons = provider.get(event_id)
        except MissingInputError:
            # Logged by the photon counter, which writes an empty event record
            photons = None

        photon_counter.process(event_id, photons)

    return photon_counter.finalize_library()
