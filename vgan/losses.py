"""Adversarial losses for the discriminator and generator."""

import torch
import torch.nn.functional as F


def _non_saturating_d(real, fake):
    return F.softplus(-real).mean() + F.softplus(fake).mean()


def _non_saturating_g(fake):
    return F.softplus(-fake).mean()


def _lsgan_d(real, fake):
    return ((real - 1) ** 2).mean() + (fake ** 2).mean()


def _lsgan_g(fake):
    return ((fake - 1) ** 2).mean()


def _hinge_d(real, fake):
    return F.relu(1 - real).mean() + F.relu(1 + fake).mean()


def _wgan_d(real, fake):
    return fake.mean() - real.mean()


def _negative_mean_g(fake):
    return -fake.mean()


_LOSSES = {
    "non_saturating": (_non_saturating_d, _non_saturating_g),
    "lsgan": (_lsgan_d, _lsgan_g),
    "hinge": (_hinge_d, _negative_mean_g),
    "wgan": (_wgan_d, _negative_mean_g),
}


class GANLoss:
    """Pair of D/G losses over logits, fixed at construction."""

    def __init__(self, loss_type="non_saturating"):
        if loss_type not in _LOSSES:
            raise ValueError(f"Unknown GAN loss type: {loss_type}")
        self.loss_type = loss_type
        self._loss_d, self._loss_g = _LOSSES[loss_type]

    def loss_d(self, real: torch.Tensor, fake: torch.Tensor) -> torch.Tensor:
        return self._loss_d(real, fake)

    def loss_g(self, fake: torch.Tensor) -> torch.Tensor:
        return self._loss_g(fake)

    def __repr__(self):
        return f"GANLoss({self.loss_type!r})"
