"""Variational Discriminator Bottleneck GAN."""
