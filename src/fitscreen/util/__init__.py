
from .validation import (
    check_number
)

from .io import (
    read_dataframe,
    read_yaml
)

from .dataframe import (
    check_columns
)

from .cli import (
    generalized_main
)
