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

import os
import numpy as np
from utils.system_utils import searchForMaxIteration
from utils.graphics_utils import getNerfppNorm
from scene.gaussian_model import GaussianModel
from scene.gaussian_optimizer import GaussianOptimizer, OptimizerGroup
from arguments import ModelParams

class Scene:

    gaussians : GaussianModel

    def __init__(self, args : ModelParams, gaussians : GaussianModel, train_cameras, pcd=None, test_cameras=None, load_iteration=None, scene_extent=None):
        """
        Binds a GaussianModel to its cameras and output folder.

        Cameras come from an external loader; only `camera_center` is read
        here, to derive the scene extent when none is given. Gaussians are
        either seeded from `pcd` or loaded from a saved iteration
        (-1 picks the latest one under <model_path>/point_cloud).
        """
        self.model_path = args.model_path
        self.loaded_iter = None
        self.gaussians = gaussians

        if load_iteration:
            if load_iteration == -1:
                self.loaded_iter = searchForMaxIteration(os.path.join(self.model_path, "point_cloud"))
            else:
                self.loaded_iter = load_iteration
            print("Loading trained model at iteration {}".format(self.loaded_iter))

        self.train_cameras = list(train_cameras)
        self.test_cameras = list(test_cameras) if test_cameras else []

        if scene_extent is None:
            cam_centers = [np.asarray(cam.camera_center.detach().cpu() if hasattr(cam.camera_center, "detach") else cam.camera_center)
                           for cam in self.train_cameras]
            scene_extent = getNerfppNorm(cam_centers)["radius"] if cam_centers else 1.0
        self.cameras_extent = scene_extent

        if self.loaded_iter:
            self.gaussians.load_ply(os.path.join(self.model_path,
                                                 "point_cloud",
                                                 "iteration_" + str(self.loaded_iter),
                                                 "point_cloud.ply"))
            self.gaussians.spatial_lr_scale = self.cameras_extent
        else:
            if pcd is None:
                raise ValueError("Scene needs a point cloud when no saved iteration is loaded")
            self.gaussians.create_from_pcd(pcd, self.cameras_extent)

    def save(self, iteration):
        point_cloud_path = os.path.join(self.model_path, "point_cloud/iteration_{}".format(iteration))
        self.gaussians.save_ply(os.path.join(point_cloud_path, "point_cloud.ply"))

    def getTrainCameras(self):
        return self.train_cameras

    def getTestCameras(self):
        return self.test_cameras
