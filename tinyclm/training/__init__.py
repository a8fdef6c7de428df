# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
tinyclm training package.

Subsystems:
  - corpus: random-access reader over the uint16 token file
  - dataloader: random-window batch sampler
  - trainer: trainable-model contract and its torch implementation
  - optimizer: AdamW factory and optimizer handle
  - metrics: progress observer
  - engine: training loop
  - export: inference-only bundle
"""
