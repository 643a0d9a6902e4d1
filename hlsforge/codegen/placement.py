"""
Network identity and intermediate-buffer placement.

The network identity selects fixed-point widths in data-types.h and the
default placement of intermediate buffers: ``local`` buffers are declared
inside forward(), any other placement is expected to be provided by the
surrounding system through a forward() parameter.
"""

import logging
from typing import Optional

from hlsforge.dsl.layers import Network

logger = logging.getLogger(__name__)

LOCAL = "local"
PORT = "port"

LENET = "lenet"
ALEXNET = "alexnet"
VGG = "vgg"
VGG_SCALEHLS = "vgg-scalehls"


def guess_network(network: Network, name: Optional[str] = None) -> str:
    """Return the network identity; an explicit ``name`` always wins."""
    if name:
        return name

    count = len(network)
    first = network.first
    input_x = first.input_volume.x if first is not None and first.input_volume is not None else None

    if count < 10:
        guess = LENET
    elif input_x == 32 and count > 14:
        guess = VGG_SCALEHLS
    elif input_x == 32 and count == 13:
        guess = ALEXNET
    elif count > 14:
        guess = VGG
    else:
        guess = ""

    logger.debug("network guess for %d layer(s): '%s'", count, guess)
    return guess


def layer_data_location(index: int, network_guess: str, override: Optional[str] = None) -> str:
    """Placement of the output buffer of the layer with 1-based ``index``."""
    if index < 0:
        raise ValueError(f"layer index must not be negative, got {index}")
    if override:
        return override
    if network_guess == VGG:
        return PORT
    return LOCAL
