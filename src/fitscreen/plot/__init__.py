from .ppc_bands import (
    ppc_bands,
    freq_mutant_ppc,
    logfreq_ratio_neutral_ppc
)

from .time_series import (
    bc_time_series,
    logfreq_ratio_time_series
)

from .trace_density import (
    trace_density
)
