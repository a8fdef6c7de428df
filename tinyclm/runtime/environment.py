# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Environment checks and a system snapshot for startup logs.
"""

import platform
import sys
from typing import NamedTuple

import torch

MINIMUM_PYTHON = (3, 11)


class SystemInfo(NamedTuple):
    """What the process is running on."""

    python_version: str
    platform: str
    architecture: str
    torch_version: str
    cuda_available: bool


def check_minimum_python() -> None:
    """
    Raises:
        RuntimeError: If the interpreter is older than MINIMUM_PYTHON.
    """
    if sys.version_info[:2] < MINIMUM_PYTHON:
        major, minor = sys.version_info[:2]
        raise RuntimeError(
            f"tinyclm requires Python >= {MINIMUM_PYTHON[0]}.{MINIMUM_PYTHON[1]}, "
            f"but you're running {major}.{minor}."
        )


def get_system_info() -> SystemInfo:
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        architecture=platform.machine(),
        torch_version=torch.__version__,
        cuda_available=torch.cuda.is_available(),
    )
