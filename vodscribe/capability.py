"""Detects whether GPU acceleration is usable for the speech engine."""

import logging

import torch

from .models import DeviceSelection
from .process import run_command

logger = logging.getLogger(__name__)


async def probe_acceleration(use_acceleration: bool, nvidia_smi: str = "nvidia-smi") -> DeviceSelection:
    """
    Chooses the device the speech engine should run on.

    Never raises: any failure to confirm a working CUDA device degrades to CPU.

    Args:
        use_acceleration: Whether GPU usage is enabled by configuration.
        nvidia_smi: Name or path of the nvidia-smi executable.

    Returns:
        A DeviceSelection carrying the engine's device flag.
    """
    if not use_acceleration:
        logger.info("GPU usage disabled by configuration")
        return DeviceSelection(use_cuda=False)

    try:
        await run_command([nvidia_smi])
    except Exception as e:
        logger.warning(f"No CUDA GPU detected ({e}), falling back to CPU")
        return DeviceSelection(use_cuda=False)

    # whisper runs on torch, so the driver alone is not enough
    if not torch.cuda.is_available():
        logger.warning("nvidia-smi succeeded but torch cannot see a CUDA device, falling back to CPU")
        return DeviceSelection(use_cuda=False)

    logger.info("CUDA GPU detected")
    return DeviceSelection(use_cuda=True)
