"""
gp_pipe: posterior sampling of Gaussian-process hyperparameters.

The package is split into a model side (priors, mean/kernel/likelihood
functions and the reference GP target models) and a sampling side
(``gp_pipe.sampling``) that only talks to models through the
``TargetModel`` interface.
"""

import jax

# covariance factorisations are unusable in single precision
jax.config.update("jax_enable_x64", True)

__version__ = '0.1.0'
