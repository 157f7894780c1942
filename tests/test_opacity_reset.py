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

import pytest
import torch

from conftest import DEVICE, random_point_cloud
from scene.gaussian_model import GaussianModel


def take_step(gaussians):
    loss = (gaussians.get_xyz ** 2).sum() + gaussians.get_opacity.sum() + gaussians.get_scaling.sum() \
        + gaussians.get_features.sum() + gaussians.get_rotation.sum()
    loss.backward()
    gaussians.step()


def test_reset_sets_opacity_and_clears_its_moments(random_model):
    take_step(random_model)
    xyz_moment = random_model.optimizer["xyz"].exp_avg.clone()
    scaling_before = random_model._scaling.detach().clone()

    random_model.reset_opacity()

    assert torch.allclose(random_model.get_opacity.detach().cpu(), torch.full((32, 1), 0.01), atol=1e-6)
    opacity_group = random_model.optimizer["opacity"]
    assert float(opacity_group.exp_avg.abs().sum()) == 0.0
    assert float(opacity_group.exp_avg_sq.abs().sum()) == 0.0
    assert opacity_group.param is random_model._opacity

    # Other groups keep their state
    assert torch.equal(random_model.optimizer["xyz"].exp_avg, xyz_moment)
    assert float(xyz_moment.abs().sum()) > 0.0
    assert torch.equal(random_model._scaling.detach(), scaling_before)


def test_reset_lowers_high_and_raises_low_opacity(random_model):
    with torch.no_grad():
        random_model._opacity[:16] = -10.0
        random_model._opacity[16:] = 10.0
    random_model.reset_opacity()
    assert torch.allclose(random_model.get_opacity.detach().cpu(), torch.full((32, 1), 0.01), atol=1e-6)


def test_training_continues_after_reset(random_model):
    take_step(random_model)
    random_model.reset_opacity()
    take_step(random_model)
    random_model.check_invariant()
    # Opacity gradient is positive everywhere, so Adam pushes every value down
    assert random_model.get_opacity.detach().max() < 0.01


def test_reset_before_setup_raises():
    gaussians = GaussianModel(0, device=DEVICE)
    gaussians.create_from_pcd(random_point_cloud(4), 1.0)
    with pytest.raises(RuntimeError):
        gaussians.reset_opacity()
