import pytest
import torch
import torch.nn.functional as F

from vgan.config import DiscriminatorConfig, GeneratorConfig, ImageSize
from vgan.models import DBlock, Discriminator, GBlock, Generator
from vgan.utils import weights_init

SMALL_G = GeneratorConfig(latent_size=16, base_channels=2, max_channels=16)
SMALL_D = DiscriminatorConfig(encoded_size=8, base_channels=2, max_channels=16)


@pytest.mark.parametrize("size", list(ImageSize))
def test_generator_output_matches_image_size(size):
    generator = Generator(SMALL_G, size)
    images = generator(torch.randn(2, 16))
    assert images.shape == (2, 3, int(size), int(size))
    assert images.abs().max() <= 1


@pytest.mark.parametrize("size", list(ImageSize))
@pytest.mark.parametrize("spectral_norm", [False, True])
def test_discriminator_output_shapes(size, spectral_norm):
    cfg = DiscriminatorConfig(encoded_size=8, base_channels=2, max_channels=16,
                              spectral_norm=spectral_norm)
    discriminator = Discriminator(cfg, size)
    output = discriminator(torch.randn(3, 3, int(size), int(size)), reparametrize=True)
    assert output.logit.shape == (3,)
    assert output.mean.shape == (3, 8)
    assert output.logvar.shape == (3, 8)


def test_generator_builds_one_block_per_level():
    generator = Generator(SMALL_G, 32)
    assert generator.sizes == [ImageSize.x4, ImageSize.x8, ImageSize.x16, ImageSize.x32]
    assert len(generator.blocks) == 4


def test_discriminator_blocks_stop_at_8x8():
    discriminator = Discriminator(SMALL_D, 32)
    assert discriminator.sizes == [ImageSize.x32, ImageSize.x16, ImageSize.x8]
    assert len(Discriminator(SMALL_D, 4).blocks) == 0


def test_channels_are_capped():
    generator = Generator(GeneratorConfig(latent_size=16, base_channels=8, max_channels=32), 64)
    first = generator.blocks[0]
    assert first.conv1.in_channels == 32
    assert first.conv1.out_channels == 32
    last = generator.blocks[-1]
    assert last.conv1.out_channels == 8

    discriminator = Discriminator(DiscriminatorConfig(base_channels=8, max_channels=32), 64)
    assert discriminator.blocks[0].conv1.in_channels == 8
    assert discriminator.blocks[-1].conv2.out_channels == 32


def test_end_to_end_64x64_batch():
    generator = Generator(GeneratorConfig(latent_size=128), 64)
    generator.apply(weights_init)
    images = generator(torch.randn(32, 128))
    assert images.shape == (32, 3, 64, 64)
    assert images.min() >= -1
    assert images.max() <= 1


def test_deterministic_discriminator_is_repeatable():
    discriminator = Discriminator(SMALL_D, 16)
    x = torch.randn(4, 3, 16, 16)
    a = discriminator(x, reparametrize=False)
    b = discriminator(x, reparametrize=False)
    assert torch.equal(a.logit, b.logit)
    assert torch.equal(a.mean, b.mean)


def test_spectral_norm_discriminator_is_repeatable_in_eval_mode():
    cfg = DiscriminatorConfig(encoded_size=8, base_channels=2, max_channels=16, spectral_norm=True)
    discriminator = Discriminator(cfg, 16).eval()
    x = torch.randn(4, 3, 16, 16)
    a = discriminator(x, reparametrize=False)
    b = discriminator(x, reparametrize=False)
    assert torch.equal(a.logit, b.logit)
    assert torch.equal(a.mean, b.mean)


def test_spectral_norm_power_iteration_runs_only_in_train_mode():
    cfg = DiscriminatorConfig(encoded_size=8, base_channels=2, max_channels=16, spectral_norm=True)
    discriminator = Discriminator(cfg, 16)
    x = torch.randn(4, 3, 16, 16)
    u = discriminator.mean_conv.weight_u.clone()

    discriminator.eval()
    discriminator(x)
    assert torch.equal(discriminator.mean_conv.weight_u, u)

    discriminator.train()
    discriminator(x)
    assert not torch.equal(discriminator.mean_conv.weight_u, u)


def test_reparametrized_discriminator_injects_noise():
    discriminator = Discriminator(SMALL_D, 16)
    x = torch.randn(4, 3, 16, 16)
    a = discriminator(x, reparametrize=True)
    b = discriminator(x, reparametrize=True)
    assert torch.equal(a.mean, b.mean)
    assert not torch.equal(a.logit, b.logit)


def test_generator_infer_chunks_match_full_batch():
    generator = Generator(SMALL_G, 16)
    z = torch.randn(10, 16)
    chunked = generator.infer(z, chunk_size=3)
    with torch.no_grad():
        full = generator(z)
    assert chunked.shape == (10, 3, 16, 16)
    assert not chunked.requires_grad
    assert torch.allclose(chunked, full, atol=1e-5)
    assert generator.training


def test_gblock_doubles_resolution():
    block = GBlock(8, 4)
    out = block(torch.randn(2, 8, 5, 5))
    assert out.features.shape == (2, 4, 10, 10)
    assert out.images.shape == (2, 3, 10, 10)


def test_gblock_identity_shortcut_when_channels_match():
    block = GBlock(4, 4)
    assert isinstance(block.shortcut, torch.nn.Identity)


def test_dblock_keeps_resolution():
    block = DBlock(4, 8, use_spectral_norm=True)
    assert block(torch.randn(2, 4, 6, 6)).shape == (2, 8, 6, 6)
    assert hasattr(block.conv1, "weight_orig")


def test_weights_init_skips_spectral_norm_layers():
    cfg = DiscriminatorConfig(encoded_size=8, base_channels=2, max_channels=16, spectral_norm=True)
    discriminator = Discriminator(cfg, 8)
    before = discriminator.blocks[0].conv1.weight_orig.detach().clone()
    discriminator.apply(weights_init)
    assert torch.equal(before, discriminator.blocks[0].conv1.weight_orig)


def test_nearest_resize_method():
    cfg = GeneratorConfig(latent_size=16, resize_method="nearest", base_channels=2, max_channels=16)
    assert Generator(cfg, 16)(torch.randn(1, 16)).shape == (1, 3, 16, 16)


def test_generator_head_is_leaky_relu_activated():
    generator = Generator(SMALL_G, 8)
    z = torch.randn(5, 16)
    captured = []
    handle = generator.blocks[0].register_forward_pre_hook(
        lambda module, inputs: captured.append(inputs[0])
    )
    generator(z)
    handle.remove()

    head = generator.head(z)
    assert (head < 0).any()
    expected = F.leaky_relu(head, 0.2).view(5, -1, 2, 2)
    assert torch.allclose(captured[0], expected)
