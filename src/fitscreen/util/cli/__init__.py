
from .generalized_main import (
    build_parser,
    generalized_main
)
