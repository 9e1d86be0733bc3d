from __future__ import annotations

from typing import TypeAlias

import numpy as np
from beartype import BeartypeConf, beartype
from jaxtyping import Float

# Accept ints wherever a float is annotated (chainage values often arrive as ints).
typechecker = beartype(conf=BeartypeConf(is_pep484_tower=True))

XY: TypeAlias = tuple[float, float]

NpPoint: TypeAlias = Float[np.ndarray, "2"]
NpControlPoints: TypeAlias = Float[np.ndarray, "4 2"]
