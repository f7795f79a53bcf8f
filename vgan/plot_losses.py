"""Visualize training losses and beta from a VGAN losses.csv file."""

import argparse
import csv
import os

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Plot VGAN training losses")
    parser.add_argument("log_dir",
        help="Directory containing losses.csv"
    )
    return parser.parse_args(argv)


def rolling_avg(data, window=20):
    result = []
    for i in range(len(data)):
        start = max(0, i - window + 1)
        result.append(sum(data[start:i+1]) / (i - start + 1))
    return result


def read_losses(csv_path):
    """Return {column: [values]} sorted by epoch."""
    rows = {}
    with open(csv_path) as f:
        for row in csv.DictReader(f):
            rows[int(row["epoch"])] = row
    epochs = sorted(rows)
    columns = {"epoch": epochs}
    for key in ("d_loss", "g_loss", "bottleneck", "beta"):
        columns[key] = [float(rows[e][key]) for e in epochs]
    return columns


def plot_losses(columns, title, out_path):
    epochs = columns["epoch"]
    panels = [
        ("d_loss", "Discriminator Loss", "tab:blue"),
        ("g_loss", "Generator Loss", "tab:orange"),
        ("bottleneck", "Bottleneck (KL - Ic)", "tab:green"),
    ]
    fig, axes = plt.subplots(len(panels) + 1, 1, figsize=(12, 10), sharex=True)

    for ax, (key, label, color) in zip(axes, panels):
        ax.plot(epochs, columns[key], color=color, alpha=0.4, linewidth=0.8)
        ax.plot(epochs, rolling_avg(columns[key]), color=color, linewidth=2,
                label=f"{label} (rolling avg)")
        ax.set_ylabel(label)
        ax.legend()
        ax.grid(True, alpha=0.3)
    axes[0].set_title(f"VGAN Training Losses ({title})")
    axes[2].axhline(0.0, color="black", linewidth=0.8, linestyle="--")

    axes[-1].plot(epochs, columns["beta"], color="tab:red", linewidth=1.5)
    axes[-1].set_ylabel("Beta")
    axes[-1].set_xlabel("Epoch")
    axes[-1].grid(True, alpha=0.3)

    plt.tight_layout()
    fig.savefig(out_path, dpi=150)
    plt.close(fig)


def main(argv=None):
    args = parse_args(argv)

    csv_path = os.path.join(args.log_dir, "losses.csv")
    title = os.path.basename(os.path.normpath(args.log_dir))
    out_path = os.path.join(args.log_dir, "losses_plot.png")

    plot_losses(read_losses(csv_path), title, out_path)
    print(f"Plot saved to {out_path}")


if __name__ == "__main__":
    main()
