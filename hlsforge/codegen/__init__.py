"""
HLS C++ emission: main.cpp (forward pass) and the data-types.h /
param-list.h headers.
"""

from .forward import ForwardGenerator, generate_forward
from .headers import emit_data_types_header, emit_param_list_header
from .placement import guess_network, layer_data_location
from .writer import CodeWriter
