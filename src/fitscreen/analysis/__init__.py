
from . import hierarchical

from .ppc import (
    quantile_bands,
    matrix_quantile_range,
    freq_from_posterior,
    logfreq_ratio_from_posterior,
    freq_mutant_from_df,
    logfreq_ratio_neutral_from_df,
    posterior_to_dataframe
)
