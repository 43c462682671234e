# Copyright (C) 2020-2021 Markus Wallerberger and others
# SPDX-License-Identifier: MIT
"""
Linear least squares with the solution constrained to a hypersphere
"""
__copyright__ = "2020-2021 Markus Wallerberger and others"
__license__ = "MIT"
__version__ = "0.1.0"

from ._fit import (CONVERGED, CONVERGENCE_ERROR, SIGN_ERROR,
                   RootFindingWarning, secular_function, sphere_bracket,
                   principal_bracket)
from .matrix import (FittingMatrix, DecomposedMatrix, SphereConstrainedMatrix,
                     ConditioningWarning)
from .spherical import lstsq_sphere, lstsq_ball
