"""Utility functions: noise sampling, weight init, image logging, checkpoints."""

import json
import os

import torch
import torch.nn as nn
from torchvision.utils import make_grid, save_image


def sample_noise(size, latent_size, device=None):
    """Standard normal latent vectors, shape [size, latent_size]."""
    return torch.randn(size, latent_size, device=device)


def interpolation_grid(corners, grid_size=8, flatten=True):
    """Bilinearly interpolate between four latent corners.

    corners: [4, latent] ordered top-left, top-right, bottom-left, bottom-right.
    Returns [grid_size * grid_size, latent] when ``flatten``, else
    [grid_size, grid_size, latent].
    """
    if corners.size(0) != 4:
        raise ValueError(f"Expected 4 corners, got {corners.size(0)}")
    t = torch.linspace(0, 1, grid_size, device=corners.device, dtype=corners.dtype)
    v = t.view(-1, 1, 1)  # rows
    u = t.view(1, -1, 1)  # columns
    tl, tr, bl, br = corners
    top = (1 - u) * tl + u * tr
    bottom = (1 - u) * bl + u * br
    grid = (1 - v) * top + v * bottom
    if flatten:
        return grid.reshape(grid_size * grid_size, -1)
    return grid


def weights_init(m):
    """He-normal initialization (skips spectral-normed layers)."""
    if isinstance(m, (nn.Conv2d, nn.ConvTranspose2d, nn.Linear)):
        # Spectral norm wraps the weight, so check for weight_orig
        if hasattr(m, 'weight_orig'):
            return
        nn.init.kaiming_normal_(m.weight)
        if m.bias is not None:
            nn.init.constant_(m.bias, 0)


def denormalize(images):
    """Map [-1, 1] images to [0, 1], clipping outliers."""
    return ((images + 1) / 2).clamp(0, 1)


def plot_images(writer, tag, images, global_step, nrow=8):
    """Log a [-1, 1] image batch as one grid to TensorBoard."""
    grid = make_grid(denormalize(images.detach().cpu()), nrow=nrow)
    writer.add_image(tag, grid, global_step)


def save_image_grid(tensor, path, nrow=8):
    """Save a tensor as an image grid, denormalizing from [-1,1] to [0,1]."""
    save_image(tensor, path, nrow=nrow, normalize=True, value_range=(-1, 1))


def add_json_text(writer, tag, cfg):
    """Log the run config as pretty-printed JSON text."""
    text = cfg.to_json()
    # markdown code block keeps the indentation
    writer.add_text(tag, "```\n" + text + "\n```")
    return text


def write_config(log_dir, cfg):
    path = os.path.join(log_dir, "config.json")
    with open(path, "w") as f:
        json.dump(cfg.to_dict(), f, indent=2)
    return path


def save_checkpoint(path, step, cfg, generator, discriminator, optimizer_G, optimizer_D):
    """Save networks, optimizer states and config. Beta is not saved."""
    torch.save(
        {
            "step": step,
            "config": cfg.to_dict(),
            "generator_state_dict": generator.state_dict(),
            "discriminator_state_dict": discriminator.state_dict(),
            "optimizer_G_state_dict": optimizer_G.state_dict(),
            "optimizer_D_state_dict": optimizer_D.state_dict(),
        },
        path,
    )
