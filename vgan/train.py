"""VGAN training loop: adversarial loss plus an adaptive information bottleneck."""

import argparse
import csv
import os
from dataclasses import dataclass

import torch
from torch.utils.tensorboard import SummaryWriter
from tqdm import tqdm

from vgan import config
from vgan.bottleneck import bottleneck_loss, update_beta
from vgan.config import Config, ImageSize
from vgan.dataset import get_dataloader
from vgan.losses import GANLoss
from vgan.models import Discriminator, Generator
from vgan.utils import (add_json_text, interpolation_grid, plot_images, sample_noise,
                        save_checkpoint, save_image_grid, weights_init, write_config)


@dataclass
class TrainState:
    """Mutable training state carried across steps. Beta is never checkpointed."""

    step: int = 0
    beta: float = 0.0


def discriminator_step(generator, discriminator, optimizer_D, criterion, reals, noise, state, cfg):
    """One discriminator update with the bottleneck penalty, then a beta update.

    Returns (metrics, fakes).
    """
    with torch.no_grad():
        fakes = generator(noise)

    real_output = discriminator(reals, reparametrize=True)
    fake_output = discriminator(fakes, reparametrize=True)

    gan_loss = criterion.loss_d(real_output.logit, fake_output.logit)
    mean = torch.cat([real_output.mean, fake_output.mean], dim=0)
    logvar = torch.cat([real_output.logvar, fake_output.logvar], dim=0)
    bn_loss = bottleneck_loss(mean, logvar, cfg.Ic)

    loss = gan_loss + state.beta * bn_loss

    optimizer_D.zero_grad()
    loss.backward()
    optimizer_D.step()

    state.beta = update_beta(state.beta, cfg.alpha, bn_loss)

    metrics = {
        "D": loss.item(),
        "Dgan": gan_loss.item(),
        "Dbottleneck": bn_loss.item(),
        "Dbeta": state.beta,
    }
    return metrics, fakes


def generator_step(generator, discriminator, optimizer_G, criterion, noise, cfg):
    """One generator update against a deterministic discriminator encoding."""
    fakes = generator(noise)
    output = discriminator(fakes, reparametrize=cfg.reparameterize_in_g_training)
    loss = criterion.loss_g(output.logit)

    optimizer_G.zero_grad()
    loss.backward()
    optimizer_G.step()
    return {"G": loss.item()}


def train_step(generator, discriminator, optimizer_G, optimizer_D, criterion,
               reals, state, cfg, writer=None):
    """Discriminator step then generator step on the same noise."""
    noise = sample_noise(reals.size(0), cfg.G.latent_size, device=reals.device)

    metrics, fakes = discriminator_step(
        generator, discriminator, optimizer_D, criterion, reals, noise, state, cfg
    )
    metrics.update(generator_step(generator, discriminator, optimizer_G, criterion, noise, cfg))

    if writer is not None:
        if state.step % cfg.log_interval == 0:
            for name, value in metrics.items():
                writer.add_scalar(f"loss/{name}", value, state.step)
        if state.step % cfg.plot_interval == 0:
            plot_images(writer, "reals", reals, state.step)
            plot_images(writer, "fakes", fakes, state.step)
            writer.flush()

    return metrics


def make_test_noises(latent_size, device=None):
    """Fixed evaluation latents: random sets and 8x8 interpolation grids."""
    test_noises = [
        sample_noise(config.NUM_TEST_IMAGES, latent_size, device=device)
        for _ in range(config.NUM_TEST_SETS)
    ]
    test_grid_noises = [
        interpolation_grid(sample_noise(4, latent_size, device=device), config.GRID_SIZE)
        for _ in range(config.NUM_TEST_SETS)
    ]
    return test_noises, test_grid_noises


def infer(generator, writer, step, test_noises, test_grid_noises,
          chunk_size=config.BATCH_SIZE, sample_dir=None):
    """Render the fixed evaluation latents and log them."""
    print("infer...")
    for i, noise in enumerate(test_noises):
        images = generator.infer(noise, chunk_size)
        plot_images(writer, f"test_random/{i}", images, step, nrow=config.GRID_SIZE)
        if i == 0 and sample_dir is not None:
            save_image_grid(images, os.path.join(sample_dir, f"step_{step:08d}.png"),
                            nrow=config.GRID_SIZE)
    for i, noise in enumerate(test_grid_noises):
        images = generator.infer(noise, chunk_size)
        plot_images(writer, f"test_intpl/{i}", images, step, nrow=config.GRID_SIZE)
    writer.flush()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Train a VGAN on a directory of images")
    parser.add_argument("image_dir", help="Directory containing training images")
    parser.add_argument("--logdir", type=str, default=config.LOG_DIR,
                        help="Directory for TensorBoard logs, samples and checkpoints")
    parser.add_argument("--device", type=str, default="auto", choices=["auto", "cpu", "cuda"],
                        help="Device to use: auto (default), cpu, or cuda")
    parser.add_argument("--image-size", type=int, default=config.IMAGE_SIZE,
                        choices=[int(s) for s in ImageSize],
                        help="Training resolution (overrides config.IMAGE_SIZE)")
    parser.add_argument("--epochs", type=int, default=config.NUM_EPOCHS,
                        help="Total number of epochs (overrides config.NUM_EPOCHS)")
    parser.add_argument("--batch-size", type=int, default=config.BATCH_SIZE,
                        help="Batch size (overrides config.BATCH_SIZE)")
    parser.add_argument("--num-workers", type=int, default=config.NUM_WORKERS,
                        help="DataLoader worker processes")
    parser.add_argument("--spectral-norm", action="store_true",
                        help="Spectral-normalize the discriminator")
    return parser.parse_args(argv)


def build_config(args):
    return Config(
        image_size=args.image_size,
        batch_size=args.batch_size,
        num_epochs=args.epochs,
        num_workers=args.num_workers,
        D=config.DiscriminatorConfig(spectral_norm=args.spectral_norm or config.SPECTRAL_NORM),
    )


def main(argv=None):
    args = parse_args(argv)
    cfg = build_config(args)

    # Setup
    sample_dir = os.path.join(args.logdir, "samples")
    checkpoint_dir = os.path.join(args.logdir, "checkpoints")
    os.makedirs(sample_dir, exist_ok=True)
    os.makedirs(checkpoint_dir, exist_ok=True)
    if args.device == "auto":
        device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
    else:
        device = torch.device(args.device)
    print(f"Using device: {device}")

    torch.manual_seed(cfg.seed)
    if device.type == "cuda":
        torch.cuda.manual_seed(cfg.seed)

    # Data
    print("Search images...")
    dataloader = get_dataloader(args.image_dir, cfg.image_size, cfg.batch_size,
                                num_workers=cfg.num_workers,
                                pin_memory=device.type == "cuda")
    print(f"{len(dataloader.dataset)} images found, {len(dataloader)} batches/epoch")

    # Models
    generator = Generator(cfg.G, cfg.image_size).to(device)
    discriminator = Discriminator(cfg.D, cfg.image_size).to(device)
    generator.apply(weights_init)
    discriminator.apply(weights_init)

    g_params = sum(p.numel() for p in generator.parameters())
    d_params = sum(p.numel() for p in discriminator.parameters())
    print(f"Generator: {g_params:,} params | Discriminator: {d_params:,} params")

    optimizer_G = torch.optim.Adam(
        generator.parameters(), lr=cfg.learning_rates.G, betas=cfg.adam_betas
    )
    optimizer_D = torch.optim.Adam(
        discriminator.parameters(), lr=cfg.learning_rates.D, betas=cfg.adam_betas
    )
    criterion = GANLoss(cfg.loss)

    # Logging
    writer = SummaryWriter(args.logdir)
    add_json_text(writer, "config", cfg)
    write_config(args.logdir, cfg)

    test_noises, test_grid_noises = make_test_noises(cfg.G.latent_size, device=device)

    loss_log_path = os.path.join(args.logdir, "losses.csv")
    with open(loss_log_path, "w", newline="") as f:
        csv.writer(f).writerow(["epoch", "d_loss", "g_loss", "bottleneck", "beta"])

    def snapshot(step):
        infer(generator, writer, step, test_noises, test_grid_noises,
              chunk_size=cfg.batch_size, sample_dir=sample_dir)
        save_checkpoint(
            os.path.join(checkpoint_dir, f"checkpoint_step_{step:08d}.pt"),
            step, cfg, generator, discriminator, optimizer_G, optimizer_D,
        )

    state = TrainState()
    generator.train()
    discriminator.train()

    try:
        for epoch in range(cfg.num_epochs):
            d_loss_sum = 0.0
            g_loss_sum = 0.0
            bn_loss_sum = 0.0
            n_batches = 0

            pbar = tqdm(dataloader, desc=f"Epoch {epoch}", leave=False)
            for reals in pbar:
                reals = reals.to(device)

                metrics = train_step(generator, discriminator, optimizer_G, optimizer_D,
                                     criterion, reals, state, cfg, writer)

                if state.step % cfg.infer_interval == 0:
                    snapshot(state.step)

                state.step += 1

                d_loss_sum += metrics["D"]
                g_loss_sum += metrics["G"]
                bn_loss_sum += metrics["Dbottleneck"]
                n_batches += 1
                pbar.set_postfix(step=state.step, d_loss=f"{metrics['D']:.4f}",
                                 g_loss=f"{metrics['G']:.4f}", beta=f"{state.beta:.3g}")

            # Epoch logging
            n_batches = max(n_batches, 1)
            avg_d = d_loss_sum / n_batches
            avg_g = g_loss_sum / n_batches
            avg_bn = bn_loss_sum / n_batches
            print(f"Epoch {epoch:4d} | step {state.step} | D loss: {avg_d:.4f} | "
                  f"G loss: {avg_g:.4f} | bottleneck: {avg_bn:.4f} | beta: {state.beta:.4g}")

            with open(loss_log_path, "a", newline="") as f:
                csv.writer(f).writerow(
                    [epoch, f"{avg_d:.6f}", f"{avg_g:.6f}", f"{avg_bn:.6f}", f"{state.beta:.6g}"]
                )

        # last inference
        snapshot(state.step)
        print("Training complete.")
    finally:
        writer.close()


if __name__ == "__main__":
    main()
