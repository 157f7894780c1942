#
# Copyright (C) 2023, Inria
# GRAPHDECO research group, https://team.inria.fr/graphdeco
# All rights reserved.
#
# This software is free for non-commercial, research and evaluation use 
# under the terms of the LICENSE.md file.
#
# For inquiries contact  george.drettakis@inria.fr
#

class GaussianModelError(Exception):
    """Base error for the Gaussian primitive store."""


class InvariantViolation(GaussianModelError):
    """Buffers and optimizer state disagree on the number of primitives.

    Raised after a structural mutation or a checkpoint restore leaves an
    optimizer group misaligned with its buffer. There is no recovery once
    gradient state and parameters diverge, so callers should let it abort
    the run.
    """

    def __init__(self, message, details=None):
        super().__init__(message)
        self.details = details or {}


class UnsupportedFormatError(GaussianModelError, NotImplementedError):
    """Requested persistence format is not implemented."""
