"""Variational information bottleneck on the discriminator encoding.

The discriminator encodes each image as a diagonal Gaussian (mean, logvar).
Its KL divergence to N(0, I) upper-bounds the mutual information between
images and encodings; training keeps its batch mean below a budget ``Ic``
by adapting the Lagrange multiplier ``beta`` with projected dual ascent.
"""

import torch


def kl_divergence(mean: torch.Tensor, logvar: torch.Tensor) -> torch.Tensor:
    """KL(N(mean, exp(logvar)) || N(0, I)) per sample, shape [batch]."""
    kld = mean ** 2 + torch.exp(logvar) - logvar - 1
    return kld.sum(dim=1) / 2


def bottleneck_loss(mean: torch.Tensor, logvar: torch.Tensor, ic: float) -> torch.Tensor:
    """Batch-mean KL minus the information capacity ``ic``."""
    return kl_divergence(mean, logvar).mean() - ic


def update_beta(beta: float, alpha: float, loss) -> float:
    """Dual ascent step on beta, projected onto beta >= 0.

    ``loss`` may be a tensor; only its detached value is used.
    """
    if isinstance(loss, torch.Tensor):
        loss = loss.detach().item()
    return max(0.0, beta + alpha * float(loss))
