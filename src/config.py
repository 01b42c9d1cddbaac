"""
Configuration for ParamPack.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Directories
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"

# Load environment variables
load_dotenv(dotenv_path=BASE_DIR / ".env", override=True)

# Logging
LOG_LEVEL = os.getenv("PARAMPACK_LOG_LEVEL", "WARNING").upper()
if not isinstance(logging.getLevelName(LOG_LEVEL), int):
    LOG_LEVEL = "WARNING"

# Binding profiles
BINDINGS_FILE = Path(os.getenv("PARAMPACK_BINDINGS_FILE", str(DATA_DIR / "bindings.json")))
