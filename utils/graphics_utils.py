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
from typing import NamedTuple
from plyfile import PlyData

class BasicPointCloud(NamedTuple):
    points : np.array
    colors : np.array
    normals : np.array

    @classmethod
    def from_rgb8(cls, points, colors, normals=None):
        """Build a point cloud from 0-255 colors, stored as floats in [0, 1]."""
        points = np.asarray(points, dtype=np.float32).reshape(-1, 3)
        colors = np.asarray(colors, dtype=np.float32).reshape(-1, 3) / 255.0
        if normals is None:
            normals = np.zeros_like(points)
        return cls(points=points, colors=colors, normals=np.asarray(normals, dtype=np.float32).reshape(-1, 3))

def fetchPly(path):
    plydata = PlyData.read(path)
    vertices = plydata['vertex']
    positions = np.vstack([vertices['x'], vertices['y'], vertices['z']]).T
    colors = np.vstack([vertices['red'], vertices['green'], vertices['blue']]).T / 255.0
    names = [p.name for p in vertices.properties]
    if 'nx' in names:
        normals = np.vstack([vertices['nx'], vertices['ny'], vertices['nz']]).T
    else:
        normals = np.zeros_like(positions)
    return BasicPointCloud(points=positions, colors=colors, normals=normals)

def getNerfppNorm(cam_centers):
    """Center and radius of the camera rig; the radius is the scene extent."""
    cam_centers = np.asarray(cam_centers, dtype=np.float64).reshape(-1, 3)
    center = cam_centers.mean(axis=0, keepdims=True)
    dist = np.linalg.norm(cam_centers - center, axis=1)
    diagonal = np.max(dist) if dist.size else 0.0
    radius = diagonal * 1.1
    translate = -center[0]
    return {"translate": translate, "radius": float(radius)}
