"""Generate images from a trained VGAN checkpoint."""

import argparse

import torch

from vgan import config
from vgan.config import Config
from vgan.models import Generator
from vgan.utils import interpolation_grid, sample_noise, save_image_grid


def load_generator(checkpoint_path, device):
    """Rebuild the generator from the config stored in the checkpoint."""
    checkpoint = torch.load(checkpoint_path, map_location=device, weights_only=False)
    cfg = Config.from_dict(checkpoint["config"])
    generator = Generator(cfg.G, cfg.image_size).to(device)
    generator.load_state_dict(checkpoint["generator_state_dict"])
    generator.eval()
    return generator, cfg


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate images from a VGAN checkpoint")
    parser.add_argument("--checkpoint", type=str, required=True, help="Path to model checkpoint")
    parser.add_argument("--num", type=int, default=16, help="Number of images to generate")
    parser.add_argument("--interpolate", action="store_true",
                        help="Render an interpolation grid between 4 random latents instead")
    parser.add_argument("--output", type=str, default="generated.png", help="Output image path")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--device", type=str, default="auto", choices=["auto", "cpu", "cuda"],
                        help="Device to use: auto (default), cpu, or cuda")
    args = parser.parse_args(argv)

    if args.device == "auto":
        device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
    else:
        device = torch.device(args.device)

    if args.seed is not None:
        torch.manual_seed(args.seed)

    generator, cfg = load_generator(args.checkpoint, device)

    if args.interpolate:
        corners = sample_noise(4, cfg.G.latent_size, device=device)
        noise = interpolation_grid(corners, config.GRID_SIZE)
        nrow = config.GRID_SIZE
    else:
        noise = sample_noise(args.num, cfg.G.latent_size, device=device)
        nrow = min(8, args.num)

    images = generator.infer(noise, chunk_size=cfg.batch_size)
    save_image_grid(images, args.output, nrow=nrow)
    print(f"Saved {images.size(0)} generated images to {args.output}")


if __name__ == "__main__":
    main()
