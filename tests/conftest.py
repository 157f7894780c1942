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

"""Shared pytest fixtures for the Gaussian model tests."""

import os
import sys
from argparse import ArgumentParser

import numpy as np
import pytest
import torch
from torch import nn

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from arguments import OptimizationParams, ModelParams
from scene.gaussian_model import GaussianModel
from utils.graphics_utils import BasicPointCloud


DEVICE = "cuda" if torch.cuda.is_available() else "cpu"


@pytest.fixture
def device():
    return DEVICE


@pytest.fixture
def opt():
    """OptimizationParams with the stock defaults."""
    parser = ArgumentParser()
    op = OptimizationParams(parser)
    return op.extract(parser.parse_args([]))


@pytest.fixture
def model_params(tmp_path):
    parser = ArgumentParser()
    lp = ModelParams(parser)
    args = parser.parse_args(["-m", str(tmp_path / "run"), "--device", DEVICE])
    return lp.extract(args)


def random_point_cloud(n, seed=0):
    rng = np.random.default_rng(seed)
    points = rng.uniform(-1.0, 1.0, size=(n, 3)).astype(np.float32)
    colors = rng.uniform(0.0, 1.0, size=(n, 3)).astype(np.float32)
    return BasicPointCloud(points=points, colors=colors, normals=np.zeros_like(points))


def build_model(opt, xyz, scales=None, opacities=None, rotations=None, sh_degree=0, spatial_lr_scale=1.0):
    """
    GaussianModel with hand-picked activated values, bound to an optimizer.

    `scales` and `opacities` are post-activation values; they are written into
    the raw buffers before training_setup so the optimizer binds them.
    """
    xyz = np.asarray(xyz, dtype=np.float32).reshape(-1, 3)
    pcd = BasicPointCloud(points=xyz, colors=np.full_like(xyz, 0.5), normals=np.zeros_like(xyz))
    gaussians = GaussianModel(sh_degree, device=DEVICE)
    gaussians.create_from_pcd(pcd, spatial_lr_scale)
    n = xyz.shape[0]
    if scales is not None:
        s = torch.as_tensor(np.asarray(scales, dtype=np.float32), device=DEVICE).reshape(n, 3)
        gaussians._scaling = nn.Parameter(torch.log(s).requires_grad_(True))
    if opacities is not None:
        o = torch.as_tensor(np.asarray(opacities, dtype=np.float32), device=DEVICE).reshape(n, 1)
        gaussians._opacity = nn.Parameter(torch.log(o / (1 - o)).requires_grad_(True))
    if rotations is not None:
        r = torch.as_tensor(np.asarray(rotations, dtype=np.float32), device=DEVICE).reshape(n, 4)
        gaussians._rotation = nn.Parameter(r.clone().requires_grad_(True))
    gaussians.training_setup(opt)
    return gaussians


def assert_rows(gaussians, n):
    """Every buffer and every optimizer moment has exactly n rows."""
    assert gaussians.num_points == n
    for t in (gaussians._xyz, gaussians._features_dc, gaussians._features_rest,
              gaussians._scaling, gaussians._rotation, gaussians._opacity,
              gaussians.xyz_gradient_accum, gaussians.denom, gaussians.max_radii2D):
        assert t.shape[0] == n
    for group in gaussians.optimizer:
        assert group.param.shape[0] == n
        assert group.exp_avg.shape == group.param.shape
        assert group.exp_avg_sq.shape == group.param.shape
    gaussians.check_invariant()


@pytest.fixture
def random_model(opt):
    pcd = random_point_cloud(32)
    gaussians = GaussianModel(1, device=DEVICE)
    gaussians.create_from_pcd(pcd, 1.0)
    gaussians.training_setup(opt)
    return gaussians
