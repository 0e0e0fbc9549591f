"""
Models the frequencies of barcoded lineages in a competitive fitness assay.

The core model is:

lambda[t,b] ~ LogNormal
freq[t,b] = lambda[t,b] / sum_b(lambda[t,b])
bc_total[t] ~ Poisson(sum_b(lambda[t,b]))
bc_count[t,:] ~ Multinomial(bc_total[t], freq[t,:])

Neutral lineages have no fitness advantage, so their frequency ratios across
consecutive time points track the population mean fitness:

freq[t+1,n]/freq[t,n] ~ LogNormal(-s_pop[t], sigma_pop[t])

s_pop (population mean fitness) and sigma_pop are drawn independently at each
of the num_time - 1 steps. The replicate variant draws a mean fitness
trajectory per replicate around a shared trajectory.
"""

from .model_class import FitnessModel
from .registry import (
    model_registry,
    ModelDescriptor,
    get_model_descriptor
)
