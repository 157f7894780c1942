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

from collections import OrderedDict
import torch
from torch import nn
from torch.optim.adam import adam
from utils.errors import InvariantViolation

class OptimizerGroup:
    """
    One named optimizable buffer together with its Adam state.

    The group owns the parameter, both moment buffers and the step counter, so
    the store can gather, extend or reset them whenever the primitive count
    changes without going through an optimizer object keyed on tensor identity.
    """

    def __init__(self, name, param, lr):
        self.name = name
        self.lr = lr
        self.param = param
        self.exp_avg = torch.zeros_like(param, memory_format=torch.preserve_format).detach()
        self.exp_avg_sq = torch.zeros_like(param, memory_format=torch.preserve_format).detach()
        self.step = torch.tensor(0.0, dtype=torch.float32)

    @property
    def num_rows(self):
        return self.param.shape[0]

    def __repr__(self):
        return "OptimizerGroup(name={!r}, rows={}, lr={})".format(self.name, self.num_rows, self.lr)


class GaussianOptimizer:
    """
    Adam over the six per-primitive parameter groups.

    Built from the same list of dicts torch.optim takes
    ({'params': [tensor], 'lr': float, 'name': str}); each group must hold
    exactly one tensor whose first dimension is the primitive count.
    """

    def __init__(self, groups, betas=(0.9, 0.999), eps=1e-15):
        self.betas = betas
        self.eps = eps
        self.groups = OrderedDict()
        for g in groups:
            assert len(g["params"]) == 1
            name = g["name"]
            param = g["params"][0]
            if not isinstance(param, nn.Parameter):
                param = nn.Parameter(param.requires_grad_(True))
            self.groups[name] = OptimizerGroup(name, param, g["lr"])

    def __getitem__(self, name):
        return self.groups[name]

    def __iter__(self):
        return iter(self.groups.values())

    def __len__(self):
        return len(self.groups)

    @property
    def param_groups(self):
        return list(self.groups.values())

    def params(self):
        return {name: group.param for name, group in self.groups.items()}

    @torch.no_grad()
    def step(self):
        beta1, beta2 = self.betas
        for group in self.groups.values():
            if group.param.grad is None:
                continue
            adam([group.param],
                 [group.param.grad],
                 [group.exp_avg],
                 [group.exp_avg_sq],
                 [],
                 [group.step],
                 amsgrad=False,
                 beta1=beta1,
                 beta2=beta2,
                 lr=group.lr,
                 weight_decay=0.0,
                 eps=self.eps,
                 maximize=False)

    def zero_grad(self, set_to_none=True):
        for group in self.groups.values():
            if group.param.grad is None:
                continue
            if set_to_none:
                group.param.grad = None
            else:
                group.param.grad.detach_()
                group.param.grad.zero_()

    def replace_tensor(self, tensor, name):
        """Swap in new values for one group and clear its moments."""
        group = self.groups[name]
        group.param = nn.Parameter(tensor.detach().clone().requires_grad_(True))
        group.exp_avg = torch.zeros_like(group.param).detach()
        group.exp_avg_sq = torch.zeros_like(group.param).detach()
        return {name: group.param}

    def prune(self, mask):
        """Keep the rows where `mask` is True, moments included."""
        optimizable_tensors = {}
        for group in self.groups.values():
            group.exp_avg = group.exp_avg[mask]
            group.exp_avg_sq = group.exp_avg_sq[mask]
            group.param = nn.Parameter(group.param[mask].detach().requires_grad_(True))
            optimizable_tensors[group.name] = group.param
        return optimizable_tensors

    def cat_tensors(self, tensors_dict):
        """Append rows to every group; moments for the new rows start at zero."""
        optimizable_tensors = {}
        for group in self.groups.values():
            extension_tensor = tensors_dict[group.name].detach()
            group.exp_avg = torch.cat((group.exp_avg, torch.zeros_like(extension_tensor)), dim=0)
            group.exp_avg_sq = torch.cat((group.exp_avg_sq, torch.zeros_like(extension_tensor)), dim=0)
            group.param = nn.Parameter(
                torch.cat((group.param.detach(), extension_tensor), dim=0).requires_grad_(True))
            optimizable_tensors[group.name] = group.param
        return optimizable_tensors

    def check_rows(self, num_rows):
        for group in self.groups.values():
            shape = tuple(group.param.shape)
            if group.num_rows != num_rows \
                    or tuple(group.exp_avg.shape) != shape \
                    or tuple(group.exp_avg_sq.shape) != shape:
                raise InvariantViolation(
                    "Optimizer group '{}' is out of sync with {} primitives".format(group.name, num_rows),
                    details={
                        "group": group.name,
                        "param": shape,
                        "exp_avg": tuple(group.exp_avg.shape),
                        "exp_avg_sq": tuple(group.exp_avg_sq.shape),
                        "expected_rows": num_rows,
                    })

    def state_dict(self):
        return {
            "betas": self.betas,
            "eps": self.eps,
            "groups": OrderedDict(
                (name, {
                    "lr": group.lr,
                    "step": group.step.clone(),
                    "exp_avg": group.exp_avg.clone(),
                    "exp_avg_sq": group.exp_avg_sq.clone(),
                }) for name, group in self.groups.items()),
        }

    def load_state_dict(self, state_dict):
        self.betas = tuple(state_dict["betas"])
        self.eps = state_dict["eps"]
        saved = state_dict["groups"]
        if set(saved.keys()) != set(self.groups.keys()):
            raise InvariantViolation(
                "Checkpoint optimizer groups {} do not match {}".format(sorted(saved.keys()), sorted(self.groups.keys())))
        for name, group in self.groups.items():
            s = saved[name]
            device = group.param.device
            group.lr = s["lr"]
            group.step = s["step"].clone().cpu()
            group.exp_avg = s["exp_avg"].clone().to(device)
            group.exp_avg_sq = s["exp_avg_sq"].clone().to(device)
