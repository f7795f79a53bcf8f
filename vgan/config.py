"""Central configuration for VGAN (variational discriminator bottleneck)."""

import json
import math
from dataclasses import asdict, dataclass, field
from enum import IntEnum

# Image settings
IMAGE_SIZE = 64
NUM_CHANNELS = 3
LATENT_DIM = 128
ENCODED_DIM = 128

# Architecture
BASE_CHANNELS = 8
MAX_CHANNELS = 256
RESIZE_METHOD = "bilinear"
SPECTRAL_NORM = False

# Training
LOSS_TYPES = ("non_saturating", "lsgan", "hinge", "wgan")
LOSS = "non_saturating"
BATCH_SIZE = 32
NUM_EPOCHS = 1_000_000
LEARNING_RATE_G = 1e-3
LEARNING_RATE_D = 1e-3
BETA1 = 0.0
BETA2 = 0.99

# Bottleneck
IC = 0.2            # information capacity budget
ALPHA = 1e-8        # dual ascent rate for beta
REPARAMETERIZE_IN_G_TRAINING = False

# Data
NUM_WORKERS = 2
SEED = 42

# Paths
LOG_DIR = "./logdir"

# Logging
LOG_INTERVAL = 1
PLOT_INTERVAL = 1000
INFER_INTERVAL = 10000
NUM_TEST_SETS = 8
NUM_TEST_IMAGES = 64
GRID_SIZE = 8


class ImageSize(IntEnum):
    """Supported square resolutions."""

    x4 = 4
    x8 = 8
    x16 = 16
    x32 = 32
    x64 = 64
    x128 = 128
    x256 = 256

    @property
    def log2(self):
        return int(math.log2(self.value))

    @property
    def label(self):
        return f"{self.value}x{self.value}"


@dataclass(frozen=True)
class GDPair:
    """One value per network: G for the generator, D for the discriminator."""

    G: float
    D: float


@dataclass(frozen=True)
class GeneratorConfig:
    latent_size: int = LATENT_DIM
    resize_method: str = RESIZE_METHOD
    base_channels: int = BASE_CHANNELS
    max_channels: int = MAX_CHANNELS

    def __post_init__(self):
        if self.resize_method not in ("bilinear", "nearest"):
            raise ValueError(f"Unsupported resize method: {self.resize_method}")


@dataclass(frozen=True)
class DiscriminatorConfig:
    encoded_size: int = ENCODED_DIM
    base_channels: int = BASE_CHANNELS
    max_channels: int = MAX_CHANNELS
    spectral_norm: bool = SPECTRAL_NORM


@dataclass(frozen=True)
class Config:
    """Run configuration. Created once at start and written next to the logs."""

    loss: str = LOSS
    batch_size: int = BATCH_SIZE
    learning_rates: GDPair = GDPair(G=LEARNING_RATE_G, D=LEARNING_RATE_D)
    alpha: float = ALPHA
    Ic: float = IC
    reparameterize_in_g_training: bool = REPARAMETERIZE_IN_G_TRAINING

    image_size: int = IMAGE_SIZE
    G: GeneratorConfig = field(default_factory=GeneratorConfig)
    D: DiscriminatorConfig = field(default_factory=DiscriminatorConfig)

    adam_betas: tuple = (BETA1, BETA2)
    num_epochs: int = NUM_EPOCHS
    log_interval: int = LOG_INTERVAL
    plot_interval: int = PLOT_INTERVAL
    infer_interval: int = INFER_INTERVAL
    num_workers: int = NUM_WORKERS
    seed: int = SEED

    def __post_init__(self):
        if self.loss not in LOSS_TYPES:
            raise ValueError(f"Unknown GAN loss type: {self.loss}")
        # raises ValueError for unsupported resolutions
        object.__setattr__(self, "image_size", ImageSize(self.image_size))

    def to_dict(self):
        d = asdict(self)
        d["image_size"] = int(self.image_size)
        d["adam_betas"] = list(self.adam_betas)
        return d

    def to_json(self, indent=2):
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, d):
        d = dict(d)
        if "learning_rates" in d:
            d["learning_rates"] = GDPair(**d["learning_rates"])
        d["G"] = GeneratorConfig(**d.get("G", {}))
        d["D"] = DiscriminatorConfig(**d.get("D", {}))
        if "adam_betas" in d:
            d["adam_betas"] = tuple(d["adam_betas"])
        return cls(**d)
