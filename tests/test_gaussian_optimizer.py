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

"""Named Adam groups: stepping, gathering and extending moments."""

import pytest
import torch
from torch import nn

from scene.gaussian_optimizer import GaussianOptimizer
from utils.errors import InvariantViolation


def make_optimizer(n=5, lr=0.01):
    groups = [
        {"params": [torch.arange(n * 3, dtype=torch.float).reshape(n, 3)], "lr": lr, "name": "xyz"},
        {"params": [torch.zeros((n, 1))], "lr": lr * 2, "name": "opacity"},
    ]
    return GaussianOptimizer(groups, eps=1e-15)


def fill_moments(optimizer):
    for group in optimizer:
        rows = torch.arange(group.num_rows, dtype=torch.float).reshape(-1, *([1] * (group.param.dim() - 1)))
        group.exp_avg = rows.expand_as(group.param).clone() + 1.0
        group.exp_avg_sq = (rows.expand_as(group.param).clone() + 1.0) * 10.0


class TestStep:

    def test_matches_torch_adam(self):
        torch.manual_seed(0)
        init = torch.randn(4, 3)
        ours = GaussianOptimizer([{"params": [init.clone()], "lr": 0.05, "name": "xyz"}], eps=1e-15)
        reference = nn.Parameter(init.clone())
        torch_adam = torch.optim.Adam([reference], lr=0.05, eps=1e-15)

        for _ in range(3):
            grad = torch.randn(4, 3)
            ours["xyz"].param.grad = grad.clone()
            reference.grad = grad.clone()
            ours.step()
            torch_adam.step()

        assert torch.allclose(ours["xyz"].param.detach(), reference.detach(), atol=1e-6)
        state = torch_adam.state[reference]
        assert torch.allclose(ours["xyz"].exp_avg, state["exp_avg"], atol=1e-6)
        assert torch.allclose(ours["xyz"].exp_avg_sq, state["exp_avg_sq"], atol=1e-6)
        assert float(ours["xyz"].step) == 3.0

    def test_groups_without_grad_are_skipped(self):
        optimizer = make_optimizer()
        before = optimizer["opacity"].param.detach().clone()
        optimizer["xyz"].param.grad = torch.ones_like(optimizer["xyz"].param)
        optimizer.step()
        assert torch.equal(optimizer["opacity"].param.detach(), before)
        assert float(optimizer["opacity"].step) == 0.0
        assert float(optimizer["xyz"].step) == 1.0

    def test_step_keeps_parameter_identity(self):
        optimizer = make_optimizer()
        param = optimizer["xyz"].param
        param.grad = torch.ones_like(param)
        optimizer.step()
        assert optimizer["xyz"].param is param

    def test_zero_grad(self):
        optimizer = make_optimizer()
        optimizer["xyz"].param.grad = torch.ones_like(optimizer["xyz"].param)
        optimizer.zero_grad(set_to_none=False)
        assert float(optimizer["xyz"].param.grad.abs().sum()) == 0.0
        optimizer.zero_grad()
        assert optimizer["xyz"].param.grad is None

    def test_per_group_learning_rates(self):
        optimizer = make_optimizer(lr=0.1)
        assert optimizer["xyz"].lr == pytest.approx(0.1)
        assert optimizer["opacity"].lr == pytest.approx(0.2)
        assert [g.name for g in optimizer.param_groups] == ["xyz", "opacity"]


class TestResync:

    def test_prune_gathers_moments(self):
        optimizer = make_optimizer()
        fill_moments(optimizer)
        keep = torch.tensor([True, False, True, False, True])
        tensors = optimizer.prune(keep)

        assert set(tensors) == {"xyz", "opacity"}
        xyz = optimizer["xyz"]
        assert xyz.param.shape == (3, 3)
        assert torch.equal(xyz.param[:, 0].detach(), torch.tensor([0.0, 6.0, 12.0]))
        assert torch.equal(xyz.exp_avg[:, 0], torch.tensor([1.0, 3.0, 5.0]))
        assert torch.equal(xyz.exp_avg_sq[:, 0], torch.tensor([10.0, 30.0, 50.0]))
        assert optimizer["opacity"].exp_avg.shape == (3, 1)
        optimizer.check_rows(3)

    def test_cat_zero_extends_moments(self):
        optimizer = make_optimizer(n=2)
        fill_moments(optimizer)
        optimizer.cat_tensors({"xyz": torch.full((3, 3), 7.0), "opacity": torch.ones((3, 1))})

        xyz = optimizer["xyz"]
        assert xyz.param.shape == (5, 3)
        assert torch.equal(xyz.param[2:].detach(), torch.full((3, 3), 7.0))
        assert torch.equal(xyz.exp_avg[:2, 0], torch.tensor([1.0, 2.0]))
        assert float(xyz.exp_avg[2:].abs().sum()) == 0.0
        assert float(xyz.exp_avg_sq[2:].abs().sum()) == 0.0
        assert isinstance(xyz.param, nn.Parameter) and xyz.param.requires_grad
        optimizer.check_rows(5)

    def test_replace_tensor_clears_moments_of_one_group(self):
        optimizer = make_optimizer()
        fill_moments(optimizer)
        optimizer.replace_tensor(torch.full((5, 1), -4.0), "opacity")

        opacity = optimizer["opacity"]
        assert torch.equal(opacity.param.detach(), torch.full((5, 1), -4.0))
        assert float(opacity.exp_avg.abs().sum()) == 0.0
        assert float(opacity.exp_avg_sq.abs().sum()) == 0.0
        assert float(optimizer["xyz"].exp_avg.abs().sum()) > 0.0

    def test_check_rows_detects_drift(self):
        optimizer = make_optimizer()
        optimizer["opacity"].exp_avg = torch.zeros((4, 1))
        with pytest.raises(InvariantViolation) as excinfo:
            optimizer.check_rows(5)
        assert excinfo.value.details["group"] == "opacity"

    def test_check_rows_detects_wrong_count(self):
        optimizer = make_optimizer()
        with pytest.raises(InvariantViolation):
            optimizer.check_rows(6)


class TestStateDict:

    def test_round_trip(self):
        optimizer = make_optimizer()
        fill_moments(optimizer)
        optimizer["xyz"].lr = 0.123
        optimizer["xyz"].step = torch.tensor(7.0)
        state = optimizer.state_dict()

        restored = make_optimizer()
        restored.load_state_dict(state)
        assert restored["xyz"].lr == pytest.approx(0.123)
        assert float(restored["xyz"].step) == 7.0
        assert torch.equal(restored["xyz"].exp_avg, optimizer["xyz"].exp_avg)
        assert torch.equal(restored["opacity"].exp_avg_sq, optimizer["opacity"].exp_avg_sq)

    def test_mismatched_groups_rejected(self):
        state = make_optimizer().state_dict()
        del state["groups"]["opacity"]
        with pytest.raises(InvariantViolation):
            make_optimizer().load_state_dict(state)
