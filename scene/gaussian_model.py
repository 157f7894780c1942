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

import torch
import numpy as np
from utils.general_utils import inverse_sigmoid, get_expon_lr_func, build_rotation
from torch import nn
import os
from utils.system_utils import mkdir_p
from plyfile import PlyData, PlyElement
from utils.sh_utils import RGB2SH
from utils.knn_utils import mean_knn_dist2
from utils.graphics_utils import BasicPointCloud
from utils.general_utils import strip_symmetric, build_scaling_rotation
from utils.errors import InvariantViolation, UnsupportedFormatError
from scene.gaussian_optimizer import GaussianOptimizer

# Optimizer group name -> buffer attribute on GaussianModel
PARAM_ATTRS = {
    "xyz": "_xyz",
    "f_dc": "_features_dc",
    "f_rest": "_features_rest",
    "opacity": "_opacity",
    "scaling": "_scaling",
    "rotation": "_rotation",
}

class GaussianModel:

    def setup_functions(self):
        def build_covariance_from_scaling_rotation(scaling, scaling_modifier, rotation):
            L = build_scaling_rotation(scaling_modifier * scaling, rotation)
            actual_covariance = L @ L.transpose(1, 2)
            symm = strip_symmetric(actual_covariance)
            return symm

        self.scaling_activation = torch.exp
        self.scaling_inverse_activation = torch.log

        self.covariance_activation = build_covariance_from_scaling_rotation

        self.opacity_activation = torch.sigmoid
        self.inverse_opacity_activation = inverse_sigmoid

        self.rotation_activation = torch.nn.functional.normalize


    def __init__(self, sh_degree, device="cuda"):
        self.active_sh_degree = 0
        self.max_sh_degree = sh_degree
        self.device = device
        self._xyz = torch.empty(0)
        self._features_dc = torch.empty(0)
        self._features_rest = torch.empty(0)
        self._scaling = torch.empty(0)
        self._rotation = torch.empty(0)
        self._opacity = torch.empty(0)
        self.max_radii2D = torch.empty(0)
        self.xyz_gradient_accum = torch.empty(0)
        self.denom = torch.empty(0)
        self.tmp_radii = None
        self.optimizer = None
        self.percent_dense = 0
        self.spatial_lr_scale = 0
        self.xyz_scheduler_args = None
        self.setup_functions()

    def capture(self):
        return (
            self.active_sh_degree,
            self._xyz,
            self._features_dc,
            self._features_rest,
            self._scaling,
            self._rotation,
            self._opacity,
            self.max_radii2D,
            self.xyz_gradient_accum,
            self.denom,
            self.optimizer.state_dict(),
            self.spatial_lr_scale,
        )

    def restore(self, model_args, training_args):
        """
        Rebuild the model and its optimizer from a `capture()` tuple.

        The optimizer is recreated from `training_args` and then loaded with the
        saved moments; any row mismatch between the saved moments and the saved
        buffers raises InvariantViolation.
        """
        (self.active_sh_degree,
        xyz,
        features_dc,
        features_rest,
        scaling,
        rotation,
        opacity,
        max_radii2D,
        xyz_gradient_accum,
        denom,
        opt_dict,
        self.spatial_lr_scale) = model_args
        self._xyz = nn.Parameter(xyz.detach().to(self.device).requires_grad_(True))
        self._features_dc = nn.Parameter(features_dc.detach().to(self.device).requires_grad_(True))
        self._features_rest = nn.Parameter(features_rest.detach().to(self.device).requires_grad_(True))
        self._scaling = nn.Parameter(scaling.detach().to(self.device).requires_grad_(True))
        self._rotation = nn.Parameter(rotation.detach().to(self.device).requires_grad_(True))
        self._opacity = nn.Parameter(opacity.detach().to(self.device).requires_grad_(True))
        self.training_setup(training_args)
        self.max_radii2D = max_radii2D.to(self.device)
        self.xyz_gradient_accum = xyz_gradient_accum.to(self.device)
        self.denom = denom.to(self.device)
        self.optimizer.load_state_dict(opt_dict)
        self.check_invariant()

    @property
    def get_scaling(self):
        return self.scaling_activation(self._scaling)

    @property
    def get_rotation(self):
        return self.rotation_activation(self._rotation)

    @property
    def get_xyz(self):
        return self._xyz

    @property
    def get_features(self):
        features_dc = self._features_dc
        features_rest = self._features_rest
        return torch.cat((features_dc, features_rest), dim=1)

    @property
    def get_features_dc(self):
        return self._features_dc

    @property
    def get_features_rest(self):
        return self._features_rest

    @property
    def get_opacity(self):
        return self.opacity_activation(self._opacity)

    @property
    def num_points(self):
        return self._xyz.shape[0]

    def get_covariance(self, scaling_modifier = 1):
        return self.covariance_activation(self.get_scaling, scaling_modifier, self._rotation)

    def oneupSHdegree(self):
        if self.active_sh_degree < self.max_sh_degree:
            self.active_sh_degree += 1

    def create_from_pcd(self, pcd : BasicPointCloud, spatial_lr_scale : float):
        """
        Seed one Gaussian per input point.

        Colors become the SH DC band (higher bands zero), scales come from the
        mean squared distance to the nearest neighbours, rotations are identity
        and every opacity starts at 0.5. An empty cloud gives an empty model.
        """
        self.spatial_lr_scale = spatial_lr_scale
        points = np.asarray(pcd.points, dtype=np.float32).reshape(-1, 3)
        colors = np.asarray(pcd.colors, dtype=np.float32).reshape(-1, 3)
        fused_point_cloud = torch.tensor(points, dtype=torch.float, device=self.device)
        fused_color = RGB2SH(torch.tensor(colors, dtype=torch.float, device=self.device))
        features = torch.zeros((fused_color.shape[0], 3, (self.max_sh_degree + 1) ** 2), dtype=torch.float, device=self.device)
        features[:, :3, 0 ] = fused_color
        features[:, 3:, 1:] = 0.0

        print("Number of points at initialisation : ", fused_point_cloud.shape[0])

        dist2 = torch.clamp_min(mean_knn_dist2(fused_point_cloud), 0.0000001)
        scales = torch.log(torch.sqrt(dist2))[...,None].repeat(1, 3)
        rots = torch.zeros((fused_point_cloud.shape[0], 4), device=self.device)
        rots[:, 0] = 1

        opacities = self.inverse_opacity_activation(0.5 * torch.ones((fused_point_cloud.shape[0], 1), dtype=torch.float, device=self.device))

        self._xyz = nn.Parameter(fused_point_cloud.requires_grad_(True))
        self._features_dc = nn.Parameter(features[:,:,0:1].transpose(1, 2).contiguous().requires_grad_(True))
        self._features_rest = nn.Parameter(features[:,:,1:].transpose(1, 2).contiguous().requires_grad_(True))
        self._scaling = nn.Parameter(scales.requires_grad_(True))
        self._rotation = nn.Parameter(rots.requires_grad_(True))
        self._opacity = nn.Parameter(opacities.requires_grad_(True))
        self.max_radii2D = torch.zeros((self.get_xyz.shape[0]), device=self.device)
        self.xyz_gradient_accum = torch.zeros((self.get_xyz.shape[0], 1), device=self.device)
        self.denom = torch.zeros((self.get_xyz.shape[0], 1), device=self.device)

    def training_setup(self, training_args):
        self.percent_dense = training_args.percent_dense
        self.xyz_gradient_accum = torch.zeros((self.get_xyz.shape[0], 1), device=self.device)
        self.denom = torch.zeros((self.get_xyz.shape[0], 1), device=self.device)
        self.max_radii2D = torch.zeros((self.get_xyz.shape[0]), device=self.device)

        l = [
            {'params': [self._xyz], 'lr': training_args.position_lr_init * self.spatial_lr_scale, "name": "xyz"},
            {'params': [self._features_dc], 'lr': training_args.feature_lr, "name": "f_dc"},
            {'params': [self._features_rest], 'lr': training_args.feature_lr / 20.0, "name": "f_rest"},
            {'params': [self._opacity], 'lr': training_args.opacity_lr, "name": "opacity"},
            {'params': [self._scaling], 'lr': training_args.scaling_lr, "name": "scaling"},
            {'params': [self._rotation], 'lr': training_args.rotation_lr, "name": "rotation"}
        ]

        self.optimizer = GaussianOptimizer(l, eps=1e-15)
        self._commit(self.optimizer.params(), self.xyz_gradient_accum, self.denom, self.max_radii2D)
        self.xyz_scheduler_args = get_expon_lr_func(lr_init=training_args.position_lr_init*self.spatial_lr_scale,
                                                    lr_final=training_args.position_lr_final*self.spatial_lr_scale,
                                                    lr_delay_steps=getattr(training_args, "position_lr_delay_steps", 0),
                                                    lr_delay_mult=training_args.position_lr_delay_mult,
                                                    max_steps=training_args.position_lr_max_steps)

    def update_learning_rate(self, iteration):
        ''' Learning rate scheduling per step '''
        for param_group in self.optimizer.param_groups:
            if param_group.name == "xyz":
                lr = self.xyz_scheduler_args(iteration)
                param_group.lr = lr
                return lr

    def step(self):
        self._require_optimizer()
        self.optimizer.step()
        self.optimizer.zero_grad(set_to_none = True)

    def zero_grad(self):
        self._require_optimizer()
        self.optimizer.zero_grad(set_to_none = True)

    def construct_list_of_attributes(self):
        l = ['x', 'y', 'z', 'nx', 'ny', 'nz']
        # All channels except the 3 DC
        for i in range(self._features_dc.shape[1]*self._features_dc.shape[2]):
            l.append('f_dc_{}'.format(i))
        for i in range(self._features_rest.shape[1]*self._features_rest.shape[2]):
            l.append('f_rest_{}'.format(i))
        l.append('opacity')
        for i in range(self._scaling.shape[1]):
            l.append('scale_{}'.format(i))
        for i in range(self._rotation.shape[1]):
            l.append('rot_{}'.format(i))
        return l

    def save(self, path):
        ext = os.path.splitext(path)[1].lower()
        if ext == ".ply":
            self.save_ply(path)
            return
        raise UnsupportedFormatError("Saving Gaussians as '{}' is not supported, use .ply".format(ext or path))

    def save_ply(self, path):
        mkdir_p(os.path.dirname(path) or ".")

        xyz = self._xyz.detach().cpu().numpy()
        normals = np.zeros_like(xyz)
        f_dc = self._features_dc.detach().transpose(1, 2).flatten(start_dim=1).contiguous().cpu().numpy()
        f_rest = self._features_rest.detach().transpose(1, 2).flatten(start_dim=1).contiguous().cpu().numpy()
        opacities = self._opacity.detach().cpu().numpy()
        scale = self._scaling.detach().cpu().numpy()
        rotation = self._rotation.detach().cpu().numpy()

        dtype_full = [(attribute, 'f4') for attribute in self.construct_list_of_attributes()]

        elements = np.empty(xyz.shape[0], dtype=dtype_full)
        attributes = np.concatenate((xyz, normals, f_dc, f_rest, opacities, scale, rotation), axis=1)
        elements[:] = list(map(tuple, attributes))
        el = PlyElement.describe(elements, 'vertex')
        PlyData([el]).write(path)

    def reset_opacity(self):
        self._require_optimizer()
        opacities_new = self.inverse_opacity_activation(torch.ones_like(self.get_opacity)*0.01)
        optimizable_tensors = self.optimizer.replace_tensor(opacities_new, "opacity")
        self._opacity = optimizable_tensors["opacity"]
        self.check_invariant()

    def load_ply(self, path):
        plydata = PlyData.read(path)

        xyz = np.stack((np.asarray(plydata.elements[0]["x"]),
                        np.asarray(plydata.elements[0]["y"]),
                        np.asarray(plydata.elements[0]["z"])),  axis=1)
        opacities = np.asarray(plydata.elements[0]["opacity"])[..., np.newaxis]

        features_dc = np.zeros((xyz.shape[0], 3, 1))
        features_dc[:, 0, 0] = np.asarray(plydata.elements[0]["f_dc_0"])
        features_dc[:, 1, 0] = np.asarray(plydata.elements[0]["f_dc_1"])
        features_dc[:, 2, 0] = np.asarray(plydata.elements[0]["f_dc_2"])

        extra_f_names = [p.name for p in plydata.elements[0].properties if p.name.startswith("f_rest_")]
        extra_f_names = sorted(extra_f_names, key = lambda x: int(x.split('_')[-1]))
        if len(extra_f_names) != 3*(self.max_sh_degree + 1) ** 2 - 3:
            raise ValueError("{} has {} SH rest coefficients, expected {} for degree {}".format(
                path, len(extra_f_names), 3*(self.max_sh_degree + 1) ** 2 - 3, self.max_sh_degree))
        features_extra = np.zeros((xyz.shape[0], len(extra_f_names)))
        for idx, attr_name in enumerate(extra_f_names):
            features_extra[:, idx] = np.asarray(plydata.elements[0][attr_name])
        # Reshape (P,F*SH_coeffs) to (P, F, SH_coeffs except DC)
        features_extra = features_extra.reshape((features_extra.shape[0], 3, (self.max_sh_degree + 1) ** 2 - 1))

        scale_names = [p.name for p in plydata.elements[0].properties if p.name.startswith("scale_")]
        scale_names = sorted(scale_names, key = lambda x: int(x.split('_')[-1]))
        scales = np.zeros((xyz.shape[0], len(scale_names)))
        for idx, attr_name in enumerate(scale_names):
            scales[:, idx] = np.asarray(plydata.elements[0][attr_name])

        rot_names = [p.name for p in plydata.elements[0].properties if p.name.startswith("rot")]
        rot_names = sorted(rot_names, key = lambda x: int(x.split('_')[-1]))
        rots = np.zeros((xyz.shape[0], len(rot_names)))
        for idx, attr_name in enumerate(rot_names):
            rots[:, idx] = np.asarray(plydata.elements[0][attr_name])

        self._xyz = nn.Parameter(torch.tensor(xyz, dtype=torch.float, device=self.device).requires_grad_(True))
        self._features_dc = nn.Parameter(torch.tensor(features_dc, dtype=torch.float, device=self.device).transpose(1, 2).contiguous().requires_grad_(True))
        self._features_rest = nn.Parameter(torch.tensor(features_extra, dtype=torch.float, device=self.device).transpose(1, 2).contiguous().requires_grad_(True))
        self._opacity = nn.Parameter(torch.tensor(opacities, dtype=torch.float, device=self.device).requires_grad_(True))
        self._scaling = nn.Parameter(torch.tensor(scales, dtype=torch.float, device=self.device).requires_grad_(True))
        self._rotation = nn.Parameter(torch.tensor(rots, dtype=torch.float, device=self.device).requires_grad_(True))
        self.max_radii2D = torch.zeros((self.get_xyz.shape[0]), device=self.device)
        self.xyz_gradient_accum = torch.zeros((self.get_xyz.shape[0], 1), device=self.device)
        self.denom = torch.zeros((self.get_xyz.shape[0], 1), device=self.device)

        self.active_sh_degree = self.max_sh_degree

    def _require_optimizer(self):
        if self.optimizer is None:
            raise RuntimeError("GaussianModel.training_setup() must be called before optimizing or densifying")

    def _commit(self, optimizable_tensors, xyz_gradient_accum, denom, max_radii2D):
        """
        Install a new generation of buffers.

        Every per-primitive buffer is replaced here and nowhere else during
        densification, so the row count changes for all of them at once.
        """
        for name, attr in PARAM_ATTRS.items():
            setattr(self, attr, optimizable_tensors[name])
        self.xyz_gradient_accum = xyz_gradient_accum
        self.denom = denom
        self.max_radii2D = max_radii2D
        self.check_invariant()

    def check_invariant(self):
        n = self._xyz.shape[0]
        rows = {attr: getattr(self, attr).shape[0] for attr in PARAM_ATTRS.values()}
        rows["xyz_gradient_accum"] = self.xyz_gradient_accum.shape[0]
        rows["denom"] = self.denom.shape[0]
        rows["max_radii2D"] = self.max_radii2D.shape[0]
        if self.tmp_radii is not None:
            rows["tmp_radii"] = self.tmp_radii.shape[0]
        bad = {k: v for k, v in rows.items() if v != n}
        if bad:
            raise InvariantViolation("Per-primitive buffers disagree on {} rows".format(n), details=bad)
        if self.optimizer is not None:
            for name, attr in PARAM_ATTRS.items():
                if self.optimizer[name].param is not getattr(self, attr):
                    raise InvariantViolation("Buffer '{}' is not the tensor bound to its optimizer group".format(attr))
            self.optimizer.check_rows(n)

    def prune_points(self, mask):
        self._require_optimizer()
        valid_points_mask = ~mask
        optimizable_tensors = self.optimizer.prune(valid_points_mask)

        if self.tmp_radii is not None:
            self.tmp_radii = self.tmp_radii[valid_points_mask]
        self._commit(optimizable_tensors,
                     self.xyz_gradient_accum[valid_points_mask],
                     self.denom[valid_points_mask],
                     self.max_radii2D[valid_points_mask])

    def densification_postfix(self, new_xyz, new_features_dc, new_features_rest, new_opacities, new_scaling, new_rotation, new_tmp_radii=None):
        self._require_optimizer()
        d = {"xyz": new_xyz,
        "f_dc": new_features_dc,
        "f_rest": new_features_rest,
        "opacity": new_opacities,
        "scaling" : new_scaling,
        "rotation" : new_rotation}

        optimizable_tensors = self.optimizer.cat_tensors(d)
        n = optimizable_tensors["xyz"].shape[0]

        if self.tmp_radii is not None:
            if new_tmp_radii is None:
                new_tmp_radii = torch.zeros((new_xyz.shape[0]), device=self.device)
            self.tmp_radii = torch.cat((self.tmp_radii, new_tmp_radii))

        # Accumulation window restarts for every primitive, old and new
        self._commit(optimizable_tensors,
                     torch.zeros((n, 1), device=self.device),
                     torch.zeros((n, 1), device=self.device),
                     torch.zeros((n), device=self.device))

    def densify_and_split(self, grads, grad_threshold, scene_extent, N=2):
        n_init_points = self.get_xyz.shape[0]
        # Extract points that satisfy the gradient condition
        padded_grad = torch.zeros((n_init_points), device=self.device)
        padded_grad[:grads.shape[0]] = grads.squeeze(-1)
        selected_pts_mask = torch.where(padded_grad >= grad_threshold, True, False)
        selected_pts_mask = torch.logical_and(selected_pts_mask,
                                              torch.max(self.get_scaling, dim=1).values > self.percent_dense*scene_extent)

        stds = self.get_scaling[selected_pts_mask].repeat(N,1)
        means =torch.zeros((stds.size(0), 3),device=self.device)
        samples = torch.normal(mean=means, std=stds)
        rots = build_rotation(self._rotation[selected_pts_mask]).repeat(N,1,1)
        new_xyz = torch.bmm(rots, samples.unsqueeze(-1)).squeeze(-1) + self.get_xyz[selected_pts_mask].repeat(N, 1)
        new_scaling = self.scaling_inverse_activation(self.get_scaling[selected_pts_mask].repeat(N,1) / (0.8*N))
        new_rotation = self._rotation[selected_pts_mask].repeat(N,1)
        new_features_dc = self._features_dc[selected_pts_mask].repeat(N,1,1)
        new_features_rest = self._features_rest[selected_pts_mask].repeat(N,1,1)
        new_opacity = self._opacity[selected_pts_mask].repeat(N,1)
        new_tmp_radii = self.tmp_radii[selected_pts_mask].repeat(N) if self.tmp_radii is not None else None

        self.densification_postfix(new_xyz, new_features_dc, new_features_rest, new_opacity, new_scaling, new_rotation, new_tmp_radii)

        prune_filter = torch.cat((selected_pts_mask, torch.zeros(N * selected_pts_mask.sum(), device=self.device, dtype=bool)))
        self.prune_points(prune_filter)

    def densify_and_clone(self, grads, grad_threshold, scene_extent):
        # Extract points that satisfy the gradient condition
        selected_pts_mask = torch.where(torch.norm(grads, dim=-1) >= grad_threshold, True, False)
        selected_pts_mask = torch.logical_and(selected_pts_mask,
                                              torch.max(self.get_scaling, dim=1).values <= self.percent_dense*scene_extent)

        new_xyz = self._xyz[selected_pts_mask]
        new_features_dc = self._features_dc[selected_pts_mask]
        new_features_rest = self._features_rest[selected_pts_mask]
        new_opacities = self._opacity[selected_pts_mask]
        new_scaling = self._scaling[selected_pts_mask]
        new_rotation = self._rotation[selected_pts_mask]
        new_tmp_radii = self.tmp_radii[selected_pts_mask] if self.tmp_radii is not None else None

        self.densification_postfix(new_xyz, new_features_dc, new_features_rest, new_opacities, new_scaling, new_rotation, new_tmp_radii)

    @torch.no_grad()
    def densify_and_prune(self, max_grad, min_opacity, extent, max_screen_size):
        """
        One densification cycle: clone small, split large, then prune.

        Screen-space radii are snapshotted before cloning and carried through
        the cycle (children inherit their parent's radius), because the
        running maximum itself restarts at zero with every append.
        """
        self._require_optimizer()
        if self.num_points == 0:
            return

        grads = self.xyz_gradient_accum / self.denom
        grads[grads.isnan()] = 0.0

        self.tmp_radii = self.max_radii2D.clone()
        try:
            self.densify_and_clone(grads, max_grad, extent)
            self.densify_and_split(grads, max_grad, extent)

            prune_mask = (self.get_opacity < min_opacity).squeeze(-1)
            if max_screen_size:
                big_points_vs = self.tmp_radii > max_screen_size
                big_points_ws = self.get_scaling.max(dim=1).values > 0.1 * extent
                prune_mask = torch.logical_or(torch.logical_or(prune_mask, big_points_vs), big_points_ws)
            self.prune_points(prune_mask)
        finally:
            self.tmp_radii = None

        torch.cuda.empty_cache()

    def add_densification_stats(self, viewspace_point_tensor, update_filter):
        self.xyz_gradient_accum[update_filter] += torch.norm(viewspace_point_tensor.grad[update_filter,:2], dim=-1, keepdim=True)
        self.denom[update_filter] += 1

    def add_radii_stats(self, radii, visibility_filter):
        # Keep track of max radii in image-space for pruning
        self.max_radii2D[visibility_filter] = torch.max(self.max_radii2D[visibility_filter], radii[visibility_filter].to(self.max_radii2D.dtype))
