"""Image folder dataset with RGBA compositing, square padding and flips."""

import os

from PIL import Image, ImageOps
from torch.utils.data import Dataset, DataLoader
from torchvision import transforms

from vgan import config

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp")
WHITE = (255, 255, 255)


def find_images(root_dir):
    """Recursively list image files under ``root_dir``, sorted."""
    paths = []
    for dirpath, _, filenames in os.walk(root_dir):
        for f in filenames:
            if f.lower().endswith(IMAGE_EXTENSIONS):
                paths.append(os.path.join(dirpath, f))
    return sorted(paths)


class PadToSquare:
    """Pad the shorter side of a PIL image so it becomes square."""

    def __init__(self, fill=WHITE):
        self.fill = fill

    def __call__(self, img):
        w, h = img.size
        if w == h:
            return img
        side = max(w, h)
        left = (side - w) // 2
        top = (side - h) // 2
        return ImageOps.expand(img, border=(left, top, side - w - left, side - h - top),
                               fill=self.fill)

    def __repr__(self):
        return f"{self.__class__.__name__}(fill={self.fill})"


class ImageFolderDataset(Dataset):
    """Loads every image under a directory, composites RGBA onto white, applies transforms."""

    def __init__(self, root_dir, image_size=config.IMAGE_SIZE, augment=True):
        """
        Args:
            root_dir: Directory searched recursively for images
            image_size: Target image size (square)
            augment: Whether to apply random horizontal flips
        """
        self.root_dir = root_dir
        self.image_size = int(image_size)
        self.file_paths = find_images(root_dir)
        if not self.file_paths:
            raise ValueError(f"No images found in {root_dir}")

        transform_list = [
            PadToSquare(WHITE),
            transforms.Resize((self.image_size, self.image_size),
                              interpolation=transforms.InterpolationMode.BOX),
        ]
        if augment:
            transform_list.append(transforms.RandomHorizontalFlip())
        transform_list += [
            transforms.ToTensor(),
            transforms.Normalize([0.5, 0.5, 0.5], [0.5, 0.5, 0.5]),
        ]
        self.transform = transforms.Compose(transform_list)

    def __len__(self):
        return len(self.file_paths)

    def __getitem__(self, idx):
        img = Image.open(self.file_paths[idx]).convert("RGBA")
        background = Image.new("RGBA", img.size, WHITE + (255,))
        composited = Image.alpha_composite(background, img)
        rgb = composited.convert("RGB")
        return self.transform(rgb)


def get_dataloader(root_dir, image_size=config.IMAGE_SIZE, batch_size=config.BATCH_SIZE,
                   augment=True, num_workers=config.NUM_WORKERS,
                   pin_memory=False):
    """Create a shuffled, drop-last DataLoader over an image directory.

    Args:
        root_dir: Directory containing training images
        image_size: Target image size (square)
        batch_size: Batch size for training
        augment: Whether to apply random horizontal flips
        num_workers: DataLoader worker processes
        pin_memory: Page-lock batches for faster host-to-GPU copies

    Returns:
        DataLoader instance yielding [B, 3, image_size, image_size] tensors in [-1, 1]
    """
    dataset = ImageFolderDataset(root_dir, image_size, augment=augment)
    return DataLoader(
        dataset,
        batch_size=batch_size,
        shuffle=True,
        num_workers=num_workers,
        pin_memory=pin_memory,
        drop_last=True,
    )
