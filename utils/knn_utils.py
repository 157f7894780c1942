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

import numpy as np
import torch
from scipy.spatial import cKDTree

def mean_knn_dist2(points, k=3):
    """
    Mean squared distance from every point to its k nearest neighbours.

    Points with fewer than k neighbours available use all of them; an isolated
    point gets 0. Returns a float tensor of shape [N] on the device of `points`.
    """
    pts = points.detach().cpu().numpy().astype(np.float64)
    n = pts.shape[0]
    if n < 2:
        return torch.zeros((n,), dtype=torch.float, device=points.device)

    k = min(k, n - 1)
    tree = cKDTree(pts)
    # First column is the query point itself
    dists, _ = tree.query(pts, k=k + 1)
    dist2 = (dists[:, 1:] ** 2).mean(axis=1)
    return torch.tensor(dist2, dtype=torch.float, device=points.device)
