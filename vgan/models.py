"""Generator and Discriminator for VGAN.

Both networks are built from one residual block per resolution level:
- Generator: dense head to 2x2, then upsampling blocks 4x4 .. image_size,
  each adding its RGB projection to the upsampled running image
- Discriminator: 1x1 fromRGB, then downsampling blocks image_size .. 8x8,
  a Gaussian encoding head (mean, logvar) and a dense logit
- Optional spectral normalization in the discriminator
"""

from collections import namedtuple

import torch
import torch.nn as nn
import torch.nn.functional as F

from vgan import config
from vgan.config import DiscriminatorConfig, GeneratorConfig, ImageSize

GBlockOutput = namedtuple("GBlockOutput", ["features", "images"])
DiscriminatorOutput = namedtuple("DiscriminatorOutput", ["logit", "mean", "logvar"])

RESIDUAL_SCALE = 0.1


def lrelu(x):
    return F.leaky_relu(x, 0.2)


class GBlock(nn.Module):
    """LReLU -> TConv(x2) -> LReLU -> Conv, plus an upsampled shortcut."""

    def __init__(self, in_channels, out_channels):
        super().__init__()
        self.conv1 = nn.ConvTranspose2d(in_channels, out_channels, 4, 2, 1)
        self.conv2 = nn.Conv2d(out_channels, out_channels, 3, 1, 1)
        if in_channels != out_channels:
            self.shortcut = nn.Conv2d(in_channels, out_channels, 1)
        else:
            self.shortcut = nn.Identity()
        self.to_rgb = nn.Conv2d(out_channels, config.NUM_CHANNELS, 1)

    def forward(self, x):
        h = self.conv1(lrelu(x))
        h = self.conv2(lrelu(h))
        sc = self.shortcut(F.interpolate(x, scale_factor=2, mode="nearest"))
        features = RESIDUAL_SCALE * h + sc
        return GBlockOutput(features, self.to_rgb(lrelu(features)))


class DBlock(nn.Module):
    """LReLU -> Conv -> LReLU -> Conv, plus a 1x1 shortcut."""

    def __init__(self, in_channels, out_channels, use_spectral_norm=False):
        super().__init__()
        norm_fn = nn.utils.spectral_norm if use_spectral_norm else (lambda x: x)
        self.conv1 = norm_fn(nn.Conv2d(in_channels, out_channels, 3, 1, 1))
        self.conv2 = norm_fn(nn.Conv2d(out_channels, out_channels, 3, 1, 1))
        self.shortcut = norm_fn(nn.Conv2d(in_channels, out_channels, 1))

    def forward(self, x):
        h = self.conv1(lrelu(x))
        h = self.conv2(lrelu(h))
        return RESIDUAL_SCALE * h + self.shortcut(x)


class Generator(nn.Module):
    """Maps latent vectors [B, latent_size] to images [B, 3, R, R] in [-1, 1]."""

    def __init__(self, cfg=None, image_size=config.IMAGE_SIZE):
        super().__init__()
        cfg = cfg or GeneratorConfig()
        self.image_size = ImageSize(image_size)
        self.latent_size = cfg.latent_size
        self.resize_method = cfg.resize_method

        # 4x4 .. image_size
        self.sizes = [s for s in ImageSize if s <= self.image_size]

        def io_channels(size):
            d = self.image_size.log2 - size.log2
            o = cfg.base_channels * 2 ** d
            return min(2 * o, cfg.max_channels), min(o, cfg.max_channels)

        head_channels, _ = io_channels(ImageSize.x4)
        self.head = nn.Linear(cfg.latent_size, head_channels * 2 * 2)
        self.blocks = nn.ModuleList([GBlock(*io_channels(s)) for s in self.sizes])

    def _resize2x(self, images):
        align_corners = True if self.resize_method == "bilinear" else None
        return F.interpolate(images, scale_factor=2, mode=self.resize_method,
                             align_corners=align_corners)

    def forward(self, z):
        x = lrelu(self.head(z)).view(z.size(0), -1, 2, 2)

        images = None
        for depth, (size, block) in enumerate(zip(self.sizes, self.blocks), start=1):
            out = block(x)
            x = out.features
            images = out.images if images is None else out.images + self._resize2x(images)
            if size == self.image_size:
                # average over the RGB outputs accumulated so far
                return torch.tanh(images / depth)
        raise RuntimeError(f"No block reaches {self.image_size.label}")

    @torch.no_grad()
    def infer(self, z, chunk_size=config.BATCH_SIZE):
        """Generate in sub-batches of ``chunk_size`` without tracking gradients."""
        was_training = self.training
        self.eval()
        images = torch.cat([self(chunk) for chunk in torch.split(z, chunk_size)])
        self.train(was_training)
        return images


class Discriminator(nn.Module):
    """Maps images [B, 3, R, R] to a logit [B] and an encoding (mean, logvar)."""

    def __init__(self, cfg=None, image_size=config.IMAGE_SIZE):
        super().__init__()
        cfg = cfg or DiscriminatorConfig()
        self.image_size = ImageSize(image_size)
        self.encoded_size = cfg.encoded_size
        norm_fn = nn.utils.spectral_norm if cfg.spectral_norm else (lambda x: x)

        # image_size .. 8x8, each followed by 2x2 average pooling
        self.sizes = [s for s in reversed(ImageSize) if ImageSize.x8 <= s <= self.image_size]

        def io_channels(size):
            d = self.image_size.log2 - size.log2
            i = cfg.base_channels * 2 ** d
            return min(i, cfg.max_channels), min(2 * i, cfg.max_channels)

        self.from_rgb = norm_fn(nn.Conv2d(config.NUM_CHANNELS, cfg.base_channels, 1))
        self.blocks = nn.ModuleList([
            DBlock(*io_channels(s), use_spectral_norm=cfg.spectral_norm) for s in self.sizes
        ])
        self.pool = nn.AvgPool2d(2)

        last_channels = io_channels(self.sizes[-1])[1] if self.sizes else cfg.base_channels
        # (last_channels, 4, 4) -> (encoded_size, 1, 1)
        self.mean_conv = norm_fn(nn.Conv2d(last_channels, cfg.encoded_size, 4))
        self.logvar_conv = norm_fn(nn.Conv2d(last_channels, cfg.encoded_size, 4))
        self.last_dense = norm_fn(nn.Linear(cfg.encoded_size, 1))

    def forward(self, x, reparametrize=False):
        x = self.from_rgb(x)
        for block in self.blocks:
            x = self.pool(block(x))
        x = lrelu(x)

        mean = self.mean_conv(x).flatten(1)
        logvar = self.logvar_conv(x).flatten(1)

        if reparametrize:
            h = mean + torch.randn_like(mean) * torch.exp(0.5 * logvar)
        else:
            h = mean

        logit = self.last_dense(lrelu(h)).squeeze(1)
        return DiscriminatorOutput(logit, mean, logvar)
