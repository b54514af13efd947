__all__ = [
    "sim_fossils_poisson",
    "sim_fossils_intervals",
    "sim_fossils_environment",
    "simulate_fossils",
    "PoissonSampling",
    "IntervalRateSampling",
    "IntervalProbabilitySampling",
    "EnvironmentSampling",
    "SamplingMode",
]

from fossilsampler.sampling.api import (
    sim_fossils_environment,
    sim_fossils_intervals,
    sim_fossils_poisson,
)
from fossilsampler.sampling.engine import simulate_fossils
from fossilsampler.sampling.models import (
    EnvironmentSampling,
    IntervalProbabilitySampling,
    IntervalRateSampling,
    PoissonSampling,
    SamplingMode,
)
