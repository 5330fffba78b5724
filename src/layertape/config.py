import os
import logging
import torch

logger = logging.getLogger("layertape")
logger.addHandler(logging.NullHandler())

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def configure_logging(filename=None, level=logging.DEBUG):
    """Attach a handler to the package logger using the library's log format."""
    handler = logging.FileHandler(filename) if filename else logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


# leak detection is a debug aid, python -O removes it regardless of this flag
CHECK_LEAKS = __debug__ and _env_flag("LAYERTAPE_CHECK_LEAKS", True)

_DTYPES = {
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
    "float32": torch.float32,
    "float64": torch.float64,
}
_dtype_name = os.environ.get("LAYERTAPE_DTYPE", "float32")
if _dtype_name not in _DTYPES:
    raise ValueError(f"Unsupported LAYERTAPE_DTYPE {_dtype_name!r}, expected one of {sorted(_DTYPES)}")
dtype = _DTYPES[_dtype_name]

# Detect hardware availability
RUN_ON_GPU = torch.cuda.is_available()
RUN_ON_MPS = torch.backends.mps.is_available() and torch.backends.mps.is_built() if not RUN_ON_GPU else False
RUN_ON_CPU = not RUN_ON_GPU and not RUN_ON_MPS

# Determine active device
if "LAYERTAPE_DEVICE" in os.environ:
    device = torch.device(os.environ["LAYERTAPE_DEVICE"])
elif RUN_ON_GPU:
    device = torch.device("cuda")
elif RUN_ON_MPS:
    device = torch.device("mps")
else:
    device = torch.device("cpu")

device_summary = f"Running on: {device.type.upper()} ({dtype})"
logger.debug(device_summary)
