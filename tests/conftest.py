import shutil

import pytest

LENET_SOURCE = """\
from keras import layers, models
model = models.Sequential()
model.add(Conv2D(6, kernel_size=(5,5), activation='relu', input_shape=(28,28,1)))
model.add(MaxPool2D(pool_size=(2,2)))
model.add(Flatten())
model.add(Dense(10, activation='softmax'))
model.summary()
"""


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "cxx: tests that compile the generated code with g++"
    )


def pytest_collection_modifyitems(config, items):
    """Skip C++ tests if --no-cxx is passed or no g++ is installed."""
    if config.getoption("--no-cxx", default=False) or shutil.which("g++") is None:
        skip_cxx = pytest.mark.skip(reason="g++ not available or --no-cxx option passed")
        for item in items:
            if "cxx" in item.keywords:
                item.add_marker(skip_cxx)


def pytest_addoption(parser):
    parser.addoption(
        "--no-cxx",
        action="store_true",
        default=False,
        help="Skip tests that compile generated C++"
    )


@pytest.fixture
def lenet_source() -> str:
    return LENET_SOURCE
