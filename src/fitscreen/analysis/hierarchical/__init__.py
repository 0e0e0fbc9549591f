
from .assemble import assemble
from .populate_dataclass import populate_dataclass
from .fitness_model import FitnessModel
from .run_inference import (
    RunInference,
    LatentProbe
)
from .pathfinder import RunPathfinder
from .artifact import (
    FittedPosterior,
    write_artifact,
    read_artifact
)
from .fit_fitness import (
    advi,
    pathfinder_joint_fitness
)
