# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for process bootstrap: seeding, device resolution, environment info.
"""

import random

import torch

from tinyclm.config.schema import GlobalConfig
from tinyclm.runtime.bootstrap import bootstrap, resolve_device, set_deterministic_seed
from tinyclm.runtime.environment import get_system_info


class TestSeeding:
    def test_same_seed_same_draws(self) -> None:
        set_deterministic_seed(11)
        first = (random.random(), torch.rand(3))
        set_deterministic_seed(11)
        second = (random.random(), torch.rand(3))
        assert first[0] == second[0]
        assert torch.equal(first[1], second[1])

    def test_bootstrap_seeds_from_config(self) -> None:
        bootstrap(GlobalConfig(config_version="1.0.0", seed=5, log_level="WARNING"))
        first = torch.rand(2)
        bootstrap(GlobalConfig(config_version="1.0.0", seed=5, log_level="WARNING"))
        assert torch.equal(first, torch.rand(2))


class TestDevices:
    def test_explicit_cpu(self) -> None:
        assert resolve_device("cpu") == torch.device("cpu")

    def test_auto_matches_availability(self) -> None:
        expected = "cuda" if torch.cuda.is_available() else "cpu"
        assert resolve_device("auto").type == expected


class TestEnvironment:
    def test_system_info_reports_torch(self) -> None:
        info = get_system_info()
        assert info.torch_version == torch.__version__
        assert info.python_version
