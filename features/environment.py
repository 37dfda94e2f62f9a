import os
import shutil
import tempfile
from pathlib import Path

_ENV_KEYS = ("MEQA_SERVER_URL", "MEQA_TARGET_URL")


def before_scenario(context, scenario):
    # Fresh workspace per scenario
    context.workspace = Path(tempfile.mkdtemp(prefix="meqa_ws_"))
    context.error = None
    context.saved_env = {k: os.environ.get(k) for k in _ENV_KEYS}


def after_scenario(context, scenario):
    shutil.rmtree(context.workspace, ignore_errors=True)
    for key, value in context.saved_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
