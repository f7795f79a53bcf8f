import pytest
import torch
from PIL import Image

from vgan.config import Config, DiscriminatorConfig, GeneratorConfig
from vgan.losses import GANLoss
from vgan.models import Discriminator, Generator


@pytest.fixture(autouse=True)
def seed():
    torch.manual_seed(0)


@pytest.fixture
def small_config():
    """Tiny networks at 16x16 so a training step runs quickly on CPU."""
    return Config(
        batch_size=4,
        image_size=16,
        G=GeneratorConfig(latent_size=16, base_channels=4, max_channels=16),
        D=DiscriminatorConfig(encoded_size=8, base_channels=4, max_channels=16),
        log_interval=1,
        plot_interval=1,
        infer_interval=1,
        num_workers=0,
    )


@pytest.fixture
def image_dir(tmp_path):
    """Directory of mixed-size RGB/RGBA images, one nested."""
    root = tmp_path / "images"
    (root / "nested").mkdir(parents=True)
    Image.new("RGB", (40, 20), (255, 0, 0)).save(root / "wide.png")
    Image.new("RGB", (10, 30), (0, 255, 0)).save(root / "tall.jpg")
    Image.new("RGBA", (24, 24), (0, 0, 255, 0)).save(root / "nested" / "clear.png")
    Image.new("RGB", (16, 16), (0, 0, 0)).save(root / "nested" / "black.bmp")
    (root / "notes.txt").write_text("not an image")
    return root


@pytest.fixture
def build():
    """Factory for (generator, discriminator, optimizer_G, optimizer_D, criterion)."""

    def _build(cfg):
        generator = Generator(cfg.G, cfg.image_size)
        discriminator = Discriminator(cfg.D, cfg.image_size)
        optimizer_G = torch.optim.Adam(generator.parameters(), lr=cfg.learning_rates.G,
                                       betas=cfg.adam_betas)
        optimizer_D = torch.optim.Adam(discriminator.parameters(), lr=cfg.learning_rates.D,
                                       betas=cfg.adam_betas)
        return generator, discriminator, optimizer_G, optimizer_D, GANLoss(cfg.loss)

    return _build
